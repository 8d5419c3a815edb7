"""Global constants and path configuration for lxinit."""

from __future__ import annotations

import os
from pathlib import Path

# LXINIT_CONF wins over LXD_CONF so both tools can share one remotes file.
_CONF_DIR = os.environ.get("LXINIT_CONF") or os.environ.get("LXD_CONF")
if _CONF_DIR:
    CONFIG_DIR = Path(_CONF_DIR)
else:
    CONFIG_DIR = Path.home() / ".config" / "lxc"
DEFAULT_CONFIG_PATH = CONFIG_DIR / "config.yml"
CLIENT_CERT_NAME = "client.crt"
CLIENT_KEY_NAME = "client.key"
SERVER_CERTS_DIR_NAME = "servercerts"

LOCAL_SOCKET_PATH = "/var/lib/lxd/unix.socket"

PROTOCOL_LXD = "lxd"
PROTOCOL_SIMPLESTREAMS = "simplestreams"
SUPPORTED_PROTOCOLS = {PROTOCOL_LXD, PROTOCOL_SIMPLESTREAMS}

DEFAULT_REMOTE = "local"
DEFAULT_IMAGE = "default"

DEFAULT_REMOTES = {
    "local": {
        "addr": "unix://",
        "protocol": PROTOCOL_LXD,
        "public": False,
    },
    "images": {
        "addr": "https://images.linuxcontainers.org",
        "protocol": PROTOCOL_SIMPLESTREAMS,
        "public": True,
    },
    "ubuntu": {
        "addr": "https://cloud-images.ubuntu.com/releases",
        "protocol": PROTOCOL_SIMPLESTREAMS,
        "public": True,
    },
    "ubuntu-daily": {
        "addr": "https://cloud-images.ubuntu.com/daily",
        "protocol": PROTOCOL_SIMPLESTREAMS,
        "public": True,
    },
}

API_VERSION = "1.0"
# Seconds per long-poll against /operations/<id>/wait.
OPERATION_POLL_TIMEOUT = 5
HTTP_TIMEOUT = 30

# Operation resource keys, newest first; older daemons only report "containers".
INSTANCE_RESOURCE_KEYS = ("instances", "containers")

TRUTHY = {"1", "true", "yes", "on"}

