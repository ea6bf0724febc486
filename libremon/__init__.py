"""Hardware sensor monitoring daemon, client and in-process binding."""

__version__ = "1.0.0"

from libremon.config import AppConfig, load_config
from libremon.filters import filter_dimms, filter_virtual_nics
from libremon.flatten import CLIENT, DAEMON, REFERENCE, Flattener, flatten
from libremon.formatting import format_value
from libremon.tree import build_tree

__all__ = [
    "AppConfig",
    "CLIENT",
    "DAEMON",
    "Flattener",
    "REFERENCE",
    "__version__",
    "build_tree",
    "filter_dimms",
    "filter_virtual_nics",
    "flatten",
    "format_value",
    "load_config",
]
