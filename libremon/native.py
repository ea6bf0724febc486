"""In-process binding: the daemon's session without the subprocess.

Errors surface as exceptions from :mod:`libremon.errors` rather than error
responses::

    from libremon import native

    native.init({"cpu": True, "network": True, "physicalNetworkOnly": True})
    tree = native.poll({"filterVirtualNics": True})
    native.shutdown()
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

from libremon.config import DaemonConfig
from libremon.errors import AlreadyInitializedError
from libremon.filters import filter_dimms, filter_virtual_nics
from libremon.flatten import REFERENCE, flatten
from libremon.hardware import Computer, ComputerOptions, create_computer
from libremon.sensors import CATEGORIES
from libremon.session import CommandHandler, ComputerFactory

POLL_OPTIONS = ("filterVirtualNics", "filterDIMMs", "flatten")


class NativeMonitor:
    def __init__(
        self,
        config: DaemonConfig | None = None,
        computer_factory: ComputerFactory | None = None,
    ) -> None:
        self.config = config or DaemonConfig()
        self._computer_factory = computer_factory
        self._options = ComputerOptions()
        self._default_filters: dict[str, bool] = {}
        self._handler = CommandHandler(self.config, computer_factory=self._create_computer)
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    def initialized(self) -> bool:
        return self._handler.initialized

    def _create_computer(self, categories: Sequence[str]) -> Computer:
        if self._computer_factory is not None:
            return self._computer_factory(categories)
        return create_computer(categories, self.config, self._options)

    def init(self, config: Mapping[str, Any] | None = None) -> list[str]:
        """Open the hardware session for every category set to true."""
        if self._handler.initialized:
            raise AlreadyInitializedError()
        config = dict(config or {})
        self._options = ComputerOptions(
            dimm_detection=bool(config.get("dimmDetection", self.config.dimm_detection)),
            physical_network_only=bool(
                config.get("physicalNetworkOnly", self.config.physical_network_only)
            ),
        )
        filters = config.get("filters") or {}
        self._default_filters = {key: bool(filters[key]) for key in POLL_OPTIONS if key in filters}
        flags = [name for name in CATEGORIES if config.get(name)]
        self.logger.debug("Native init: %s, %s", flags, self._options)
        return self._handler.init(flags).initialized

    def poll(self, options: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """Raw tree root, optionally filtered and flattened."""
        merged = dict(self._default_filters)
        merged.update(options or {})
        response = self._handler.poll()
        tree = response.data["Children"][0]  # type: ignore[index]
        if merged.get("filterVirtualNics"):
            tree = filter_virtual_nics(tree)
        if merged.get("filterDIMMs"):
            tree = filter_dimms(tree)
        if merged.get("flatten"):
            return flatten(tree, REFERENCE)
        return tree

    def shutdown(self) -> None:
        self._handler.shutdown()
        self._handler.exit_requested = False


_default_monitor: NativeMonitor | None = None


def _monitor() -> NativeMonitor:
    global _default_monitor
    if _default_monitor is None:
        _default_monitor = NativeMonitor()
    return _default_monitor


def init(config: Mapping[str, Any] | None = None) -> list[str]:
    return _monitor().init(config)


def poll(options: Mapping[str, Any] | None = None) -> dict[str, Any]:
    return _monitor().poll(options)


def shutdown() -> None:
    _monitor().shutdown()
