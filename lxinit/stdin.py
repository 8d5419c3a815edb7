"""Piped instance configuration (``lxinit init ... < config.yaml``)."""

from __future__ import annotations

import sys
from typing import Dict, List, Optional, TextIO

try:
    import yaml  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("PyYAML is required but not installed") from exc

from lxinit.exceptions import InputError
from lxinit.models import StdinOverlay
from lxinit.utils import is_terminal, log


def _stringify(value: object) -> str:
    # YAML turns "true" and "1" into bool/int; the server only accepts strings
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


def _parse_config(raw: object) -> Dict[str, str]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise InputError("'config' must be a mapping of keys to values")
    return {str(key): _stringify(value) for key, value in raw.items()}


def _parse_devices(raw: object) -> Dict[str, Dict[str, str]]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise InputError("'devices' must be a mapping of device names to device definitions")
    devices: Dict[str, Dict[str, str]] = {}
    for name, device in raw.items():
        if not isinstance(device, dict):
            raise InputError(f"Device '{name}' must be a mapping")
        devices[str(name)] = {str(key): _stringify(value) for key, value in device.items()}
    return devices


def _parse_profiles(raw: object) -> List[str]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise InputError("'profiles' must be a list of profile names")
    return [str(item) for item in raw]


def parse_overlay(text: str) -> StdinOverlay:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise InputError(f"Invalid YAML on standard input: {exc}")
    if data is None:
        return StdinOverlay()
    if not isinstance(data, dict):
        raise InputError(f"Standard input must contain a YAML mapping, got {type(data).__name__}")

    return StdinOverlay(
        config=_parse_config(data.get("config")),
        devices=_parse_devices(data.get("devices")),
        profiles=_parse_profiles(data.get("profiles")),
    )


def load_stdin_overlay(stream: Optional[TextIO] = None) -> StdinOverlay:
    """Read an instance definition from a non-interactive stdin."""
    if stream is None:
        stream = sys.stdin
    if stream is None or is_terminal(stream):
        return StdinOverlay()
    try:
        contents = stream.read()
    except OSError as exc:
        raise InputError(f"Failed to read standard input: {exc}")
    log("DEBUG", f"Read {len(contents)} bytes of instance configuration from stdin")
    return parse_overlay(contents)
