"""
Tunnel Profile Loader

Loads and parses a tunnel.yaml profile describing one endpoint:
role, public addresses of both endpoints, ports to forward, output
path and optional overrides of the private tunnel parameters.
"""

import os
import logging
from typing import Dict, List, Any, Optional

import yaml

from engine.build import TunnelParams

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT = "/root/packettunnel/config.json"

_TUNNEL_KEYS = ("device_name", "device_ip", "peer_ip", "protoswap")


class ProfileError(Exception):
    """Exception raised for profile loading errors."""
    pass


def load_profile(path: str) -> Dict[str, Any]:
    """
    Load and parse a tunnel profile file.

    Args:
        path: Path to the tunnel.yaml file

    Returns:
        Dictionary containing:
        - role: Role token or None
        - initiator_ip / responder_ip: Public addresses or None
        - ports: List of ports (possibly empty)
        - output: Output path or None
        - params: TunnelParams with overrides applied

    Raises:
        ProfileError: If file cannot be loaded or parsed
    """
    path = os.path.expanduser(path)

    if not os.path.isfile(path):
        raise ProfileError(f"Profile file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ProfileError(f"Failed to parse profile file: {e}")
    except IOError as e:
        raise ProfileError(f"Failed to read profile file: {e}")

    if data is None:
        logger.warning(f"Profile {path} is empty, using defaults")
        data = {}

    return _process_profile(data)


def _process_profile(data: Any) -> Dict[str, Any]:
    """
    Process raw profile data, merging tunnel overrides with defaults.

    Args:
        data: Raw parsed YAML data

    Returns:
        Processed profile
    """
    if not isinstance(data, dict):
        raise ProfileError("Profile must be a mapping")

    endpoints = data.get("endpoints") or {}
    if not isinstance(endpoints, dict):
        raise ProfileError("'endpoints' must be a mapping with 'initiator' and 'responder'")

    ports = data.get("ports") or []
    if not isinstance(ports, list):
        raise ProfileError("'ports' must be a list")

    return {
        "role": _optional_str(data, "role"),
        "initiator_ip": _optional_str(endpoints, "initiator"),
        "responder_ip": _optional_str(endpoints, "responder"),
        "ports": ports,
        "output": _optional_str(data, "output"),
        "params": _tunnel_params(data.get("tunnel") or {}),
    }


def _optional_str(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ProfileError(f"'{key}' must be a string, got {value!r}")
    return value


def _tunnel_params(tunnel: Any) -> TunnelParams:
    """Build TunnelParams from the optional 'tunnel' section."""
    if not isinstance(tunnel, dict):
        raise ProfileError("'tunnel' must be a mapping")

    unknown = sorted(set(tunnel) - set(_TUNNEL_KEYS))
    if unknown:
        logger.warning(f"Ignoring unknown tunnel settings: {', '.join(unknown)}")

    overrides = {k: tunnel[k] for k in _TUNNEL_KEYS if k in tunnel}
    protoswap = overrides.get("protoswap")
    if protoswap is not None and (not isinstance(protoswap, int) or isinstance(protoswap, bool)):
        raise ProfileError(f"'tunnel.protoswap' must be an integer, got {protoswap!r}")
    for key in ("device_name", "device_ip", "peer_ip"):
        if key in overrides and not isinstance(overrides[key], str):
            raise ProfileError(f"'tunnel.{key}' must be a string, got {overrides[key]!r}")

    return TunnelParams(**overrides)


def list_ports(profile: Dict[str, Any]) -> List[Any]:
    """
    Get the ports listed in a processed profile.

    Args:
        profile: Processed profile data

    Returns:
        List of port values as written in the file
    """
    return list(profile.get("ports", []))
