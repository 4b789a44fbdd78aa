"""
Node Catalog

Defines the closed set of pipeline node kinds understood by the
tunneling engine, and the settings each kind requires:
- TunDevice: virtual interface carrying the inner traffic
- IpOverrider: source/destination address rewrite
- IpManipulator: IP protocol number swap
- RawSocket: raw network layer ingress/egress
- TcpListener / TcpConnector: forwarded TCP port pair
"""

import ipaddress
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

TUN_DEVICE = "TunDevice"
IP_OVERRIDER = "IpOverrider"
IP_MANIPULATOR = "IpManipulator"
RAW_SOCKET = "RawSocket"
TCP_LISTENER = "TcpListener"
TCP_CONNECTOR = "TcpConnector"


def is_ipv4(value: Any) -> bool:
    """Check for a dotted-quad IPv4 address string."""
    if not isinstance(value, str):
        return False
    try:
        ipaddress.IPv4Address(value)
    except ValueError:
        return False
    return True


def is_ipv4_cidr(value: Any) -> bool:
    """Check for an IPv4 interface address with prefix, e.g. 10.10.0.1/24."""
    if not isinstance(value, str) or "/" not in value:
        return False
    try:
        ipaddress.IPv4Interface(value)
    except ValueError:
        return False
    return True


def is_port(value: Any) -> bool:
    """Check for a TCP port number in 1-65535."""
    # bool is an int subclass, but True is not a port
    return isinstance(value, int) and not isinstance(value, bool) and 1 <= value <= 65535


def _is_protocol_number(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= 255


def _is_name(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


@dataclass(frozen=True)
class SettingSpec:
    """A single required setting of a node kind."""
    key: str
    types: Tuple[type, ...]
    choices: Optional[Tuple[Any, ...]] = None
    check: Optional[Callable[[Any], bool]] = None
    expected: str = ""

    def problems(self, settings: Mapping[str, Any]) -> List[str]:
        if self.key not in settings:
            return [f"missing setting '{self.key}'"]

        value = settings[self.key]
        if not isinstance(value, self.types) or (
            bool not in self.types and isinstance(value, bool)
        ):
            type_names = "/".join(t.__name__ for t in self.types)
            return [f"setting '{self.key}' must be {type_names}, got {type(value).__name__}"]

        if self.choices is not None and value not in self.choices:
            allowed = ", ".join(str(c) for c in self.choices)
            return [f"setting '{self.key}' must be one of: {allowed} (got {value!r})"]

        if self.check is not None and not self.check(value):
            return [f"setting '{self.key}' must be {self.expected} (got {value!r})"]

        return []


_TCP_SETTINGS = (
    SettingSpec("address", (str,), check=is_ipv4, expected="a dotted-quad IPv4 address"),
    SettingSpec("port", (int,), check=is_port, expected="a port in 1-65535"),
    SettingSpec("nodelay", (bool,)),
)

CATALOG: Dict[str, Tuple[SettingSpec, ...]] = {
    TUN_DEVICE: (
        SettingSpec("device-name", (str,), check=_is_name, expected="a non-empty name"),
        SettingSpec("device-ip", (str,), check=is_ipv4_cidr, expected="an IPv4 CIDR address"),
    ),
    IP_OVERRIDER: (
        SettingSpec("direction", (str,), choices=("up", "down")),
        SettingSpec("mode", (str,), choices=("source-ip", "dest-ip")),
        SettingSpec("ipv4", (str,), check=is_ipv4, expected="a dotted-quad IPv4 address"),
    ),
    IP_MANIPULATOR: (
        SettingSpec("protoswap", (int,), check=_is_protocol_number, expected="a protocol number in 0-255"),
    ),
    RAW_SOCKET: (
        SettingSpec("capture-filter-mode", (str,), choices=("source-ip",)),
        SettingSpec("capture-ip", (str,), check=is_ipv4, expected="a dotted-quad IPv4 address"),
    ),
    TCP_LISTENER: _TCP_SETTINGS,
    TCP_CONNECTOR: _TCP_SETTINGS,
}

NODE_KINDS = tuple(CATALOG.keys())


def check_settings(kind: str, settings: Any) -> List[str]:
    """
    Check a settings mapping against the schema of its node kind.

    Only required keys are inspected; extra keys are left to the engine.

    Args:
        kind: Node kind name
        settings: Settings mapping of the node

    Returns:
        List of problem descriptions (empty when the settings are valid)
    """
    if not isinstance(kind, str) or kind not in CATALOG:
        return [f"unknown node kind {kind!r} (expected one of: {', '.join(NODE_KINDS)})"]
    if not isinstance(settings, Mapping):
        return [f"settings must be a mapping, got {type(settings).__name__}"]

    problems: List[str] = []
    for setting in CATALOG[kind]:
        problems.extend(setting.problems(settings))
    return problems
