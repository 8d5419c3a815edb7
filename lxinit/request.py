"""Creation request assembly for lxinit."""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional

from lxinit.exceptions import InputError, NotFoundError, ResolutionError
from lxinit.models import InstanceSource, InstanceSpec, StdinOverlay
from lxinit.remote import InstanceServer

Devices = Dict[str, Dict[str, str]]


def parse_config_flags(entries: Iterable[str]) -> Dict[str, str]:
    """Parse repeated ``-c key=value`` flags."""
    parsed: Dict[str, str] = {}
    for entry in entries:
        if "=" not in entry:
            raise InputError(f"Bad key=value pair: {entry}")
        key, value = entry.split("=", 1)
        parsed[key] = value
    return parsed


def merge_config(base: Mapping[str, str], overrides: Mapping[str, str]) -> Dict[str, str]:
    merged = dict(base)
    merged.update(overrides)
    return merged


def merge_devices(base: Mapping[str, Mapping[str, str]], overrides: Mapping[str, Mapping[str, str]]) -> Devices:
    """Return a copy of ``base`` with same-named devices replaced wholesale."""
    merged = {name: dict(device) for name, device in base.items()}
    for name, device in overrides.items():
        merged[name] = dict(device)
    return merged


def network_device(name: str, network_type: str) -> Dict[str, str]:
    nictype = "bridged" if network_type == "bridge" else "macvlan"
    return {"type": "nic", "nictype": nictype, "parent": name}


def root_disk_device(pool: str) -> Dict[str, str]:
    return {"type": "disk", "path": "/", "pool": pool}


def select_profiles(
    flag_profiles: Optional[List[str]],
    no_profiles: bool,
    stdin_profiles: Optional[List[str]],
) -> Optional[List[str]]:
    """Pick the profile list; ``None`` lets the server apply its default."""
    flag_profiles = list(flag_profiles or [])
    if no_profiles or flag_profiles:
        return flag_profiles
    if stdin_profiles:
        return list(stdin_profiles)
    return None


def lookup_network_device(server: InstanceServer, name: str) -> Dict[str, str]:
    try:
        network = server.get_network(name)
    except NotFoundError:
        raise ResolutionError(f"Network '{name}' not found") from None
    return network_device(name, str(network.get("type", "")))


def ensure_storage_pool(server: InstanceServer, pool: str) -> None:
    try:
        server.get_storage_pool(pool)
    except NotFoundError:
        raise ResolutionError(f"Storage pool '{pool}' not found") from None


def build_request(
    server: InstanceServer,
    overlay: StdinOverlay,
    source: InstanceSource,
    name: str = "",
    instance_type: str = "",
    config_overrides: Optional[Mapping[str, str]] = None,
    profiles: Optional[List[str]] = None,
    no_profiles: bool = False,
    network: str = "",
    storage: str = "",
    ephemeral: bool = False,
) -> InstanceSpec:
    """Merge piped YAML, flags and server lookups into one creation request."""
    devices = merge_devices(overlay.devices, {})
    if network:
        devices = merge_devices(devices, {network: lookup_network_device(server, network)})

    config = merge_config(overlay.config, config_overrides or {})

    if storage:
        ensure_storage_pool(server, storage)
        devices = merge_devices(devices, {"root": root_disk_device(storage)})

    return InstanceSpec(
        name=name,
        instance_type=instance_type,
        config=config,
        devices=devices,
        profiles=select_profiles(profiles, no_profiles, overlay.profiles),
        ephemeral=ephemeral,
        source=source,
    )
