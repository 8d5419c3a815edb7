"""Image name resolution for lxinit."""

from __future__ import annotations

from typing import Callable, Iterable, NamedTuple, Optional, Tuple

from lxinit.config import Config
from lxinit.constants import DEFAULT_IMAGE
from lxinit.exceptions import NotFoundError, RemoteError, ResolutionError
from lxinit.models import ImageInfo
from lxinit.remote import ImageServer
from lxinit.utils import log

Probe = Callable[[str], Optional[object]]


class ResolvedImage(NamedTuple):
    alias: str  # original alias as typed, empty when the token was a fingerprint
    info: ImageInfo


def alias_probe(server: ImageServer) -> Probe:
    """Probe that returns the alias target if ``token`` is an alias on ``server``."""

    def probe(token: str) -> Optional[object]:
        try:
            return server.get_image_alias(token)
        except RemoteError as exc:
            log("DEBUG", f"'{token}' is not an image alias: {exc}")
            return None

    return probe


def fingerprint_probe(server: ImageServer) -> Probe:
    """Probe that returns the image if ``token`` is a fingerprint on ``server``."""

    def probe(token: str) -> Optional[object]:
        try:
            return server.get_image(token)
        except RemoteError as exc:
            log("DEBUG", f"'{token}' is not an image fingerprint: {exc}")
            return None

    return probe


def first_match(probes: Iterable[Probe], token: str) -> Optional[object]:
    """Run probes in order and return the first non-None result."""
    for probe in probes:
        result = probe(token)
        if result is not None:
            return result
    return None


def guess_image(
    config: Config,
    server: ImageServer,
    remote: str,
    image_remote: str,
    image: str,
) -> Tuple[str, str]:
    """Work out whether ``image`` is a local image or a ``remote/image`` typo.

    ``ubuntu/20.04`` may be an alias on the local server, or the user may
    have meant ``ubuntu:20.04``. Local aliases and fingerprints win; only
    when neither exists is the first path segment treated as a remote.
    """
    if remote != image_remote:
        return image_remote, image

    head, _, rest = image.partition("/")
    if not config.has_remote(head):
        return image_remote, image

    if first_match((alias_probe(server), fingerprint_probe(server)), image) is not None:
        return image_remote, image

    if not rest:
        log("WARN", f"The local image '{image}' couldn't be found, trying '{head}:' instead.")
        return head, DEFAULT_IMAGE

    log("WARN", f"The local image '{image}' couldn't be found, trying '{head}:{rest}' instead.")
    return head, rest


def resolve_image_source(
    config: Config,
    image_remote: str,
    image_server: ImageServer,
    image: str,
) -> ResolvedImage:
    """Turn an image token into the alias to record and the image to create from."""
    if not image:
        image = DEFAULT_IMAGE

    # simplestreams images are content addressed server-side; no lookups needed
    if config.get_remote(image_remote).is_simplestreams:
        return ResolvedImage(alias=image, info=ImageInfo(fingerprint=image, public=True))

    alias = ""
    fingerprint = image
    target = first_match((alias_probe(image_server),), image)
    if target is not None:
        alias = image
        fingerprint = target.target  # type: ignore[attr-defined]

    try:
        info = image_server.get_image(fingerprint)
    except NotFoundError:
        raise ResolutionError(f"Image '{image}' not found on remote '{image_remote}'") from None
    return ResolvedImage(alias=alias, info=info)
