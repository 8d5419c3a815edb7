"""Remote image/instance servers and their REST transport.

The provisioning workflow only talks to the abstract ``ImageServer``,
``InstanceServer`` and ``Operation`` interfaces below. The ``Rest*`` classes
implement them against the daemon's ``/1.0`` REST API, either over the local
unix socket or over HTTPS with the client certificate from the config dir.
"""

from __future__ import annotations

import socket
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote

try:
    import requests  # type: ignore
    from requests.adapters import HTTPAdapter  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("requests is required but not installed") from exc

from urllib3.connection import HTTPConnection
from urllib3.connectionpool import HTTPConnectionPool

from lxinit.config import Config
from lxinit.constants import (
    API_VERSION,
    HTTP_TIMEOUT,
    LOCAL_SOCKET_PATH,
    OPERATION_POLL_TIMEOUT,
    PROTOCOL_LXD,
    PROTOCOL_SIMPLESTREAMS,
)
from lxinit.exceptions import InputError, NotFoundError, OperationError, RemoteError
from lxinit.models import ImageAlias, ImageInfo, InstanceSource, InstanceSpec, OperationInfo, ProgressEvent
from lxinit.utils import get_env, log

ProgressHandler = Callable[[ProgressEvent], None]


# ==============================================================
# INTERFACES
# ==============================================================


class Operation(ABC):
    """Client-side handle on a server-side background operation."""

    @abstractmethod
    def add_handler(self, handler: ProgressHandler) -> None:
        """Register a progress callback; must be called before ``wait``."""

    @abstractmethod
    def wait(self) -> OperationInfo:
        """Block until the operation is finished; raise OperationError on failure."""

    @abstractmethod
    def cancel(self) -> None:
        """Ask the server to cancel the operation."""

    @abstractmethod
    def get(self) -> OperationInfo:
        """Return the last known state of the operation."""


class ImageServer(ABC):
    url: str = ""
    protocol: str = PROTOCOL_LXD

    @abstractmethod
    def get_image_alias(self, name: str) -> ImageAlias:
        """Resolve an alias; raise NotFoundError if it doesn't exist."""

    @abstractmethod
    def get_image(self, fingerprint: str) -> ImageInfo:
        """Fetch image metadata; raise NotFoundError if it doesn't exist."""


class InstanceServer(ImageServer):
    @abstractmethod
    def use_target(self, member: str) -> "InstanceServer":
        """Return a server handle that places new instances on a cluster member."""

    @abstractmethod
    def get_network(self, name: str) -> Dict[str, Any]:
        ...

    @abstractmethod
    def get_storage_pool(self, name: str) -> Dict[str, Any]:
        ...

    @abstractmethod
    def get_instance(self, name: str) -> Dict[str, Any]:
        ...

    @abstractmethod
    def create_instance(self, request: InstanceSpec) -> Operation:
        ...

    @abstractmethod
    def create_instance_from_image(
        self, image_server: ImageServer, image: ImageInfo, request: InstanceSpec
    ) -> Operation:
        ...


class Connector(ABC):
    """Turns configured remote names into server handles."""

    @abstractmethod
    def instance_server(self, remote: str) -> InstanceServer:
        ...

    @abstractmethod
    def image_server(self, remote: str) -> ImageServer:
        ...


# ==============================================================
# UNIX SOCKET BACKEND
# ==============================================================


class UnixHTTPConnection(HTTPConnection):
    def __init__(self, socket_path: str, **kwargs) -> None:
        super().__init__("localhost", **kwargs)
        self.socket_path = socket_path

    def connect(self) -> None:
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        sock.settimeout(self.timeout if isinstance(self.timeout, (int, float)) else None)
        sock.connect(self.socket_path)
        self.sock = sock


class UnixHTTPConnectionPool(HTTPConnectionPool):
    def __init__(self, socket_path: str, **kwargs) -> None:
        super().__init__("localhost", **kwargs)
        self.socket_path = socket_path

    def _new_conn(self) -> UnixHTTPConnection:
        return UnixHTTPConnection(self.socket_path, timeout=self.timeout.connect_timeout)


class UnixSocketPoolManager:
    """The subset of urllib3's PoolManager that HTTPAdapter uses."""

    def __init__(self, socket_path: str) -> None:
        self.socket_path = socket_path
        self._pool: Optional[UnixHTTPConnectionPool] = None

    def connection_from_host(self, host=None, port=None, scheme="http", pool_kwargs=None):
        if self._pool is None:
            self._pool = UnixHTTPConnectionPool(self.socket_path)
        return self._pool

    def connection_from_url(self, url, pool_kwargs=None):
        return self.connection_from_host()

    def clear(self) -> None:
        if self._pool is not None:
            self._pool.close()
            self._pool = None


class UnixHTTPAdapter(HTTPAdapter):
    def __init__(self, socket_path: str, **kwargs) -> None:
        self.socket_path = socket_path
        super().__init__(**kwargs)

    def init_poolmanager(self, *args, **kwargs) -> None:
        self.poolmanager = UnixSocketPoolManager(self.socket_path)

    def proxy_manager_for(self, *args, **kwargs):
        return None

    def request_url(self, request, proxies):
        return request.path_url


# ==============================================================
# REST CLIENT
# ==============================================================


def _quote(name: str) -> str:
    return quote(name, safe="")


class RestClient:
    """Thin JSON envelope wrapper around a requests session."""

    def __init__(self, base_url: str, session: requests.Session, params: Optional[Dict[str, str]] = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session
        self.params = dict(params or {})

    def request(
        self,
        method: str,
        path: str,
        data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = HTTP_TIMEOUT,
    ) -> Dict[str, Any]:
        url = f"{self.base_url}/{API_VERSION}{path}"
        query = dict(self.params)
        query.update(params or {})
        log("DEBUG", f"{method} {url} {query or ''}")
        try:
            response = self.session.request(method, url, json=data, params=query or None, timeout=timeout)
        except requests.RequestException as exc:
            raise RemoteError(f"Failed to reach {self.base_url}: {exc}") from exc

        try:
            envelope = response.json()
        except ValueError:
            if response.status_code == 404:
                raise NotFoundError(f"{path} not found")
            raise RemoteError(
                f"Unexpected response from {self.base_url} ({response.status_code}): {response.text[:200]}",
                status_code=response.status_code,
            )

        if envelope.get("type") == "error" or response.status_code >= 400:
            code = int(envelope.get("error_code") or response.status_code)
            message = envelope.get("error") or response.reason or "unknown error"
            if code == 404:
                raise NotFoundError(message)
            raise RemoteError(message, status_code=code)
        return envelope


def _progress_from_metadata(metadata: Dict[str, Any]) -> Optional[ProgressEvent]:
    """Extract a progress update from operation metadata, if there is one."""
    progress = metadata.get("progress")
    if isinstance(progress, dict) and progress.get("stage"):
        percent = progress.get("percent")
        processed = progress.get("processed")
        speed = progress.get("speed")
        return ProgressEvent(
            text=str(progress["stage"]),
            percent=int(percent) if percent not in (None, "") else None,
            processed_bytes=int(processed) if processed not in (None, "") else None,
            speed=int(speed) if speed not in (None, "") else None,
        )
    # Older daemons report "<stage>_progress": "rootfs: 42% (12.30MB/s)"
    for key, value in metadata.items():
        if key.endswith("_progress") and isinstance(value, str) and value:
            return ProgressEvent(text=value)
    return None


class RestOperation(Operation):
    def __init__(self, client: RestClient, info: OperationInfo) -> None:
        self.client = client
        self.info = info
        self._handlers: List[ProgressHandler] = []
        self._lock = threading.Lock()
        self._last_event: Optional[ProgressEvent] = None

    def add_handler(self, handler: ProgressHandler) -> None:
        with self._lock:
            self._handlers.append(handler)

    def _emit(self, info: OperationInfo) -> None:
        event = _progress_from_metadata(info.metadata)
        if event is None or event == self._last_event:
            return
        self._last_event = event
        with self._lock:
            handlers = list(self._handlers)
        for handler in handlers:
            handler(event)

    def wait(self) -> OperationInfo:
        path = f"/operations/{_quote(self.info.id)}/wait"
        self._emit(self.info)
        while not self.info.finished:
            envelope = self.client.request(
                "GET",
                path,
                params={"timeout": OPERATION_POLL_TIMEOUT},
                timeout=OPERATION_POLL_TIMEOUT + HTTP_TIMEOUT,
            )
            self.info = OperationInfo.from_api(envelope.get("metadata") or {})
            self._emit(self.info)
        if not self.info.succeeded:
            raise OperationError(self.info.err or f"Operation {self.info.id} finished with status {self.info.status}")
        return self.info

    def cancel(self) -> None:
        self.client.request("DELETE", f"/operations/{_quote(self.info.id)}")

    def get(self) -> OperationInfo:
        return self.info


def _operation_from_envelope(client: RestClient, envelope: Dict[str, Any]) -> RestOperation:
    if envelope.get("type") != "async":
        raise RemoteError("Expected an asynchronous response from the server")
    return RestOperation(client, OperationInfo.from_api(envelope.get("metadata") or {}))


class RestImageServer(ImageServer):
    protocol = PROTOCOL_LXD

    def __init__(self, client: RestClient, url: str = "") -> None:
        self.client = client
        self.url = url or client.base_url

    def get_image_alias(self, name: str) -> ImageAlias:
        metadata = self.client.request("GET", f"/images/aliases/{_quote(name)}").get("metadata") or {}
        return ImageAlias(name=metadata.get("name", name), target=metadata.get("target", ""))

    def get_image(self, fingerprint: str) -> ImageInfo:
        metadata = self.client.request("GET", f"/images/{_quote(fingerprint)}").get("metadata") or {}
        return ImageInfo(
            fingerprint=metadata.get("fingerprint", fingerprint),
            public=bool(metadata.get("public", False)),
            aliases=[alias.get("name", "") for alias in metadata.get("aliases") or []],
            properties=metadata.get("properties") or {},
        )

    def get_image_secret(self, fingerprint: str) -> str:
        envelope = self.client.request("POST", f"/images/{_quote(fingerprint)}/secret")
        metadata = (envelope.get("metadata") or {}).get("metadata") or {}
        secret = metadata.get("secret", "")
        if not secret:
            raise RemoteError(f"No secret returned for private image {fingerprint}")
        return secret


class RestInstanceServer(RestImageServer, InstanceServer):
    def use_target(self, member: str) -> "RestInstanceServer":
        params = dict(self.client.params)
        params["target"] = member
        return RestInstanceServer(RestClient(self.client.base_url, self.client.session, params), url=self.url)

    def get_network(self, name: str) -> Dict[str, Any]:
        return self.client.request("GET", f"/networks/{_quote(name)}").get("metadata") or {}

    def get_storage_pool(self, name: str) -> Dict[str, Any]:
        return self.client.request("GET", f"/storage-pools/{_quote(name)}").get("metadata") or {}

    def get_instance(self, name: str) -> Dict[str, Any]:
        return self.client.request("GET", f"/instances/{_quote(name)}").get("metadata") or {}

    def create_instance(self, request: InstanceSpec) -> Operation:
        envelope = self.client.request("POST", "/instances", data=request.to_dict())
        return _operation_from_envelope(self.client, envelope)

    def create_instance_from_image(
        self, image_server: ImageServer, image: ImageInfo, request: InstanceSpec
    ) -> Operation:
        if image_server is self:
            # Local images are always referenced by fingerprint
            source = InstanceSource(type="image", fingerprint=image.fingerprint)
        else:
            alias = request.source.alias
            fingerprint = ""
            # Private images and fingerprint-only requests need the fingerprint
            if not alias or not image.public:
                alias, fingerprint = "", image.fingerprint
            secret = ""
            if not image.public and isinstance(image_server, RestImageServer):
                secret = image_server.get_image_secret(image.fingerprint)
            source = InstanceSource(
                type="image",
                alias=alias,
                fingerprint=fingerprint,
                server=image_server.url,
                protocol=image_server.protocol,
                mode="pull",
                secret=secret,
            )

        payload = request.to_dict()
        payload["source"] = source.to_dict()
        envelope = self.client.request("POST", "/instances", data=payload)
        return _operation_from_envelope(self.client, envelope)


class SimpleStreamsServer(ImageServer):
    """Handle on a read-only simplestreams catalog.

    The daemon downloads from the catalog itself, so the client only needs
    the URL; lookups are never issued against it.
    """

    protocol = PROTOCOL_SIMPLESTREAMS

    def __init__(self, url: str) -> None:
        self.url = url

    def get_image_alias(self, name: str) -> ImageAlias:
        raise RemoteError(f"Alias lookups are not supported against the simplestreams server {self.url}")

    def get_image(self, fingerprint: str) -> ImageInfo:
        raise RemoteError(f"Image lookups are not supported against the simplestreams server {self.url}")


class RestConnector(Connector):
    def __init__(self, config: Config) -> None:
        self.config = config

    def _session(self, remote: str, addr: str) -> requests.Session:
        session = requests.Session()
        if addr.startswith("unix:"):
            socket_path = addr[len("unix:"):].lstrip("/")
            socket_path = f"/{socket_path}" if socket_path else get_env("LXD_SOCKET", LOCAL_SOCKET_PATH)
            session.trust_env = False
            session.mount("http://", UnixHTTPAdapter(socket_path))
            return session
        cert = self.config.client_cert()
        if cert is not None:
            session.cert = cert
        server_cert = self.config.server_cert(remote)
        if server_cert is not None:
            session.verify = server_cert
        return session

    def _client(self, remote: str) -> RestClient:
        info = self.config.get_remote(remote)
        base_url = "http://lxd" if info.addr.startswith("unix:") else info.addr
        return RestClient(base_url, self._session(remote, info.addr))

    def instance_server(self, remote: str) -> InstanceServer:
        info = self.config.get_remote(remote)
        if info.is_simplestreams:
            raise InputError(f"The remote \"{remote}\" is a static image server and can't host instances")
        return RestInstanceServer(self._client(remote), url=info.addr)

    def image_server(self, remote: str) -> ImageServer:
        info = self.config.get_remote(remote)
        if info.is_simplestreams:
            return SimpleStreamsServer(info.addr)
        return RestInstanceServer(self._client(remote), url=info.addr)
