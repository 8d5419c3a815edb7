"""Post-creation network sanity check for lxinit."""

from __future__ import annotations

import sys
from typing import Any, Dict, Optional, TextIO

from lxinit.exceptions import InitError
from lxinit.remote import InstanceServer
from lxinit.utils import log

NO_NETWORK_ADVISORY = (
    "\n"
    "The instance you are starting doesn't have any network attached to it.\n"
    "  To create a new network, use: lxc network create\n"
    "  To attach a network to an instance, use: lxc network attach\n"
    "\n"
)


def has_nic(expanded_devices: Dict[str, Dict[str, Any]]) -> bool:
    return any(device.get("type") == "nic" for device in expanded_devices.values())


def check_network(server: InstanceServer, name: str, stream: Optional[TextIO] = None) -> bool:
    """Warn when the new instance ended up without a network device.

    Best effort: the instance already exists, so lookup failures are only
    logged. Returns False only when the advisory was printed.
    """
    try:
        instance = server.get_instance(name)
    except InitError as exc:
        log("DEBUG", f"Skipping network check for {name}: {exc}")
        return True

    if has_nic(instance.get("expanded_devices") or {}):
        return True

    out = stream if stream is not None else sys.stderr
    out.write(NO_NETWORK_ADVISORY)
    out.flush()
    return False
