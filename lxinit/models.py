"""Data models for lxinit."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, NamedTuple, Optional

from lxinit.constants import PROTOCOL_SIMPLESTREAMS


@dataclass(frozen=True)
class Remote:
    name: str
    addr: str
    protocol: str = "lxd"
    public: bool = False

    @property
    def is_simplestreams(self) -> bool:
        return self.protocol == PROTOCOL_SIMPLESTREAMS


class ImageAlias(NamedTuple):
    name: str
    target: str  # fingerprint


@dataclass
class ImageInfo:
    fingerprint: str
    public: bool = False
    aliases: List[str] = field(default_factory=list)
    properties: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class InstanceSource:
    type: str = "image"  # "image" or "none"
    alias: str = ""
    fingerprint: str = ""
    # Filled in when the image lives on another server
    server: str = ""
    protocol: str = ""
    mode: str = ""
    secret: str = ""

    def to_dict(self) -> Dict[str, str]:
        data = {"type": self.type}
        for key in ("alias", "fingerprint", "server", "protocol", "mode", "secret"):
            value = getattr(self, key)
            if value:
                data[key] = value
        return data


@dataclass(frozen=True)
class InstanceSpec:
    """Creation request handed to the server. Immutable once built."""

    name: str
    instance_type: str
    config: Dict[str, str]
    devices: Dict[str, Dict[str, str]]
    profiles: Optional[List[str]]  # None defers to the server default profile
    ephemeral: bool
    source: InstanceSource

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "instance_type": self.instance_type,
            "config": dict(self.config),
            "devices": {key: dict(value) for key, value in self.devices.items()},
            "ephemeral": self.ephemeral,
            "source": self.source.to_dict(),
        }
        if self.profiles is not None:
            data["profiles"] = list(self.profiles)
        return data


@dataclass
class StdinOverlay:
    config: Dict[str, str] = field(default_factory=dict)
    devices: Dict[str, Dict[str, str]] = field(default_factory=dict)
    profiles: List[str] = field(default_factory=list)


@dataclass
class ProgressEvent:
    text: str
    percent: Optional[int] = None
    processed_bytes: Optional[int] = None
    speed: Optional[int] = None  # bytes per second


@dataclass
class OperationInfo:
    id: str
    status: str = "Running"
    status_code: int = 103
    resources: Dict[str, List[str]] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)
    err: str = ""

    @property
    def succeeded(self) -> bool:
        return self.status_code == 200

    @property
    def finished(self) -> bool:
        # 200 Success, 400 Failure, 401 Cancelled
        return self.status_code >= 200

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "OperationInfo":
        return cls(
            id=data.get("id", ""),
            status=data.get("status", ""),
            status_code=int(data.get("status_code", 0)),
            resources=data.get("resources") or {},
            metadata=data.get("metadata") or {},
            err=data.get("err", ""),
        )


@dataclass
class ProvisionResult:
    server: Any
    name: str
