"""Pruning filters over the raw sensor tree.

Both filters return a new tree and never touch their input, so applying one
twice gives the same result as applying it once.
"""

from __future__ import annotations

from typing import Any, Callable

VIRTUAL_NIC_MARKERS = (
    "-QoS Packet Scheduler",
    "-WFP ",
    "-VirtualBox NDIS",
    "-Hyper-V Virtual Switch",
    "-Native WiFi Filter",
    "-Virtual WiFi Filter",
    "vEthernet",
    "vSwitch",
    "(Kerneldebugger)",
)

Node = dict[str, Any]


def _node_id(node: Node) -> str:
    return str(node.get("HardwareId") or node.get("id") or "")


def is_virtual_nic(node: Node) -> bool:
    if "/nic/" not in _node_id(node):
        return False
    text = str(node.get("Text") or "")
    return any(marker in text for marker in VIRTUAL_NIC_MARKERS)


def is_dimm(node: Node) -> bool:
    return "/memory/dimm/" in _node_id(node)


def prune(tree: Node, drop: Callable[[Node], bool]) -> Node:
    """Copy ``tree`` leaving out every descendant for which ``drop`` is true."""
    result = dict(tree)
    children = tree.get("Children")
    if isinstance(children, list):
        result["Children"] = [
            prune(child, drop) if isinstance(child, dict) else child
            for child in children
            if not (isinstance(child, dict) and drop(child))
        ]
    return result


def filter_virtual_nics(tree: Node) -> Node:
    return prune(tree, is_virtual_nic)


def filter_dimms(tree: Node) -> Node:
    return prune(tree, is_dimm)
