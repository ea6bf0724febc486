from libremon.main import main

raise SystemExit(main())
