"""Shared test fixtures: fake remotes, servers and operations."""

from __future__ import annotations

import io
import threading
from typing import Dict, List, Optional

import pytest

from lxinit.config import Config
from lxinit.exceptions import NotFoundError
from lxinit.models import ImageAlias, ImageInfo, InstanceSpec, OperationInfo, Remote
from lxinit.remote import Connector, ImageServer, InstanceServer, Operation


def success_info(*paths: str) -> OperationInfo:
    return OperationInfo(
        id="op-1",
        status="Success",
        status_code=200,
        resources={"instances": list(paths or ("/1.0/instances/c1",))},
    )


class FakeOperation(Operation):
    """Operation that emits canned progress events from inside ``wait()``."""

    def __init__(self, info=None, events=(), error=None, block=False, cancel_error=None):
        self.info = info if info is not None else success_info()
        self.events = list(events)
        self.error = error
        self.block = block
        self.cancel_error = cancel_error
        self.handlers: List = []
        self.cancel_calls = 0
        self.wait_started = threading.Event()
        self.release = threading.Event()

    def add_handler(self, handler) -> None:
        self.handlers.append(handler)

    def wait(self) -> OperationInfo:
        self.wait_started.set()
        for event in self.events:
            for handler in self.handlers:
                handler(event)
        if self.block:
            self.release.wait()
        if self.error is not None:
            raise self.error
        return self.info

    def cancel(self) -> None:
        self.cancel_calls += 1
        if self.cancel_error is not None:
            raise self.cancel_error

    def get(self) -> OperationInfo:
        return self.info


class FakeImageServer(ImageServer):
    def __init__(self, url="https://images.example.com", aliases=None, images=None, public=True) -> None:
        self.url = url
        self.aliases: Dict[str, str] = dict(aliases or {})
        self.images = set(images or ())
        self.public = public
        self.calls: List[tuple] = []

    def get_image_alias(self, name: str) -> ImageAlias:
        self.calls.append(("get_image_alias", name))
        if name not in self.aliases:
            raise NotFoundError(f"alias {name} not found")
        return ImageAlias(name=name, target=self.aliases[name])

    def get_image(self, fingerprint: str) -> ImageInfo:
        self.calls.append(("get_image", fingerprint))
        if fingerprint not in self.images:
            raise NotFoundError(f"image {fingerprint} not found")
        return ImageInfo(fingerprint=fingerprint, public=self.public)


class FakeServer(FakeImageServer, InstanceServer):
    def __init__(
        self,
        url="https://lxd.example.com:8443",
        aliases=None,
        images=None,
        networks=None,
        pools=None,
        instances=None,
        operation: Optional[FakeOperation] = None,
    ) -> None:
        super().__init__(url=url, aliases=aliases, images=images)
        self.networks = dict(networks or {})
        self.pools = set(pools or ())
        self.instances = dict(instances or {})
        self.operation = operation if operation is not None else FakeOperation()
        self.target: Optional[str] = None
        self.created: Optional[tuple] = None

    def use_target(self, member: str) -> "FakeServer":
        self.calls.append(("use_target", member))
        self.target = member
        return self

    def get_network(self, name: str) -> dict:
        self.calls.append(("get_network", name))
        if name not in self.networks:
            raise NotFoundError(f"network {name} not found")
        return {"name": name, "type": self.networks[name]}

    def get_storage_pool(self, name: str) -> dict:
        self.calls.append(("get_storage_pool", name))
        if name not in self.pools:
            raise NotFoundError(f"pool {name} not found")
        return {"name": name}

    def get_instance(self, name: str) -> dict:
        self.calls.append(("get_instance", name))
        if name not in self.instances:
            raise NotFoundError(f"instance {name} not found")
        return self.instances[name]

    def create_instance(self, request: InstanceSpec) -> Operation:
        self.calls.append(("create_instance", request.name))
        self.created = (None, None, request)
        return self.operation

    def create_instance_from_image(self, image_server, image, request) -> Operation:
        self.calls.append(("create_instance_from_image", request.name))
        self.created = (image_server, image, request)
        return self.operation


class FakeConnector(Connector):
    def __init__(self, instance_servers=None, image_servers=None) -> None:
        self.instance_servers = dict(instance_servers or {})
        self.image_servers = dict(image_servers or {})
        self.calls: List[tuple] = []

    def instance_server(self, remote: str) -> InstanceServer:
        self.calls.append(("instance_server", remote))
        return self.instance_servers[remote]

    def image_server(self, remote: str) -> ImageServer:
        self.calls.append(("image_server", remote))
        return self.image_servers[remote]


class TTYStream(io.StringIO):
    def isatty(self) -> bool:
        return True


class PipeStream(io.StringIO):
    def isatty(self) -> bool:
        return False


@pytest.fixture
def remotes_config(tmp_path) -> Config:
    """Config snapshot with a mix of management and simplestreams remotes."""
    return Config(
        default_remote="local",
        remotes={
            "local": Remote(name="local", addr="unix://", protocol="lxd"),
            "images": Remote(name="images", addr="https://images.example.com", protocol="lxd", public=True),
            "ubuntu": Remote(
                name="ubuntu", addr="https://cloud-images.ubuntu.com/releases", protocol="simplestreams", public=True
            ),
            "remoteA": Remote(name="remoteA", addr="https://a.example.com:8443", protocol="lxd"),
        },
        config_dir=tmp_path,
    )


@pytest.fixture
def empty_stdin() -> TTYStream:
    return TTYStream()


@pytest.fixture
def piped_stdin():
    def _make(text: str) -> PipeStream:
        return PipeStream(text)

    return _make
