"""Remote configuration loading for lxinit."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple

try:
    import yaml  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("PyYAML is required but not installed") from exc

from lxinit.constants import (
    CLIENT_CERT_NAME,
    CLIENT_KEY_NAME,
    CONFIG_DIR,
    DEFAULT_CONFIG_PATH,
    DEFAULT_REMOTE,
    DEFAULT_REMOTES,
    SERVER_CERTS_DIR_NAME,
    SUPPORTED_PROTOCOLS,
)
from lxinit.exceptions import InputError
from lxinit.models import Remote
from lxinit.utils import log


@dataclass(frozen=True)
class Config:
    """Read-only snapshot of the configured remotes."""

    default_remote: str
    remotes: Dict[str, Remote]
    config_dir: Path = field(default=CONFIG_DIR)

    def has_remote(self, name: str) -> bool:
        return name in self.remotes

    def get_remote(self, name: str) -> Remote:
        try:
            return self.remotes[name]
        except KeyError:
            raise InputError(f"The remote \"{name}\" doesn't exist") from None

    def parse_remote(self, raw: str) -> Tuple[str, str]:
        """Split ``[remote:]name`` into its remote and name parts."""
        if ":" not in raw:
            return self.default_remote, raw
        remote, name = raw.split(":", 1)
        if remote not in self.remotes:
            # Snapshot names ("c1/snap:0") may legitimately contain a colon
            if "/" in remote:
                return self.default_remote, raw
            raise InputError(f"The remote \"{remote}\" doesn't exist")
        return remote, name

    def client_cert(self) -> Optional[Tuple[str, str]]:
        cert = self.config_dir / CLIENT_CERT_NAME
        key = self.config_dir / CLIENT_KEY_NAME
        if cert.exists() and key.exists():
            return str(cert), str(key)
        return None

    def server_cert(self, remote: str) -> Optional[str]:
        path = self.config_dir / SERVER_CERTS_DIR_NAME / f"{remote}.crt"
        if path.exists():
            return str(path)
        return None


def _parse_remote_entry(name: str, info: object) -> Remote:
    if not isinstance(info, dict):
        raise InputError(f"Remote '{name}' must be a mapping")
    addr = info.get("addr")
    if not addr:
        raise InputError(f"Remote '{name}' has no address")
    protocol = str(info.get("protocol") or "lxd").strip().lower()
    if protocol not in SUPPORTED_PROTOCOLS:
        supported = ", ".join(sorted(SUPPORTED_PROTOCOLS))
        raise InputError(f"Remote '{name}' uses unsupported protocol '{protocol}'. Supported: {supported}")
    return Remote(name=name, addr=str(addr), protocol=protocol, public=bool(info.get("public", False)))


def load_config(config_path: Optional[Path] = None) -> Config:
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    raw_remotes: Dict[str, object] = dict(DEFAULT_REMOTES)
    default_remote = DEFAULT_REMOTE

    if config_path.exists():
        try:
            data = yaml.safe_load(config_path.read_text()) or {}
        except yaml.YAMLError as exc:
            raise InputError(f"Remote config {config_path} contains invalid YAML: {exc}")
        if not isinstance(data, dict):
            raise InputError(f"Remote config {config_path} must contain a YAML mapping")
        user_remotes = data.get("remotes") or {}
        if not isinstance(user_remotes, dict):
            raise InputError(f"'remotes' in {config_path} must be a mapping")
        raw_remotes.update(user_remotes)
        default_remote = data.get("default-remote") or DEFAULT_REMOTE
        if not isinstance(default_remote, str):
            raise InputError(f"'default-remote' in {config_path} must be a remote name")
    else:
        log("DEBUG", f"No remote config at {config_path}; using built-in remotes")

    remotes = {name: _parse_remote_entry(name, info) for name, info in raw_remotes.items()}
    if default_remote not in remotes:
        raise InputError(f"Default remote '{default_remote}' is not configured")

    return Config(default_remote=default_remote, remotes=remotes, config_dir=config_path.parent)
