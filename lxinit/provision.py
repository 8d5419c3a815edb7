"""Instance provisioning workflow for lxinit."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import Callable, List, NamedTuple, Optional, TextIO

from lxinit.config import Config
from lxinit.constants import INSTANCE_RESOURCE_KEYS
from lxinit.exceptions import InputError, RemoteError
from lxinit.images import guess_image, resolve_image_source
from lxinit.models import InstanceSource, OperationInfo, ProvisionResult
from lxinit.network import check_network
from lxinit.operations import OperationTracker, ProgressRenderer
from lxinit.remote import Connector
from lxinit.request import build_request, parse_config_flags
from lxinit.stdin import load_stdin_overlay
from lxinit.utils import log, split_remote_path


@dataclass
class InitOptions:
    config: List[str] = field(default_factory=list)
    profiles: List[str] = field(default_factory=list)
    ephemeral: bool = False
    network: str = ""
    storage: str = ""
    target: str = ""
    instance_type: str = ""
    no_profiles: bool = False
    empty: bool = False
    quiet: bool = False


class ParsedTargets(NamedTuple):
    remote: str
    name: str
    image_remote: str
    image: str


def instance_paths(info: OperationInfo) -> List[str]:
    for key in INSTANCE_RESOURCE_KEYS:
        paths = info.resources.get(key)
        if paths:
            return list(paths)
    return []


class Provisioner:
    """Create one instance from an image (or empty) and wait for it."""

    def __init__(
        self,
        config: Config,
        connector: Connector,
        stdin: Optional[TextIO] = None,
        out: Optional[TextIO] = None,
        tracker_factory: Callable[[ProgressRenderer], OperationTracker] = OperationTracker,
    ) -> None:
        self.config = config
        self.connector = connector
        self.stdin = stdin
        self.out = out
        self.tracker_factory = tracker_factory

    def _print(self, message: str) -> None:
        out = self.out if self.out is not None else sys.stdout
        print(message, file=out, flush=True)

    def parse_targets(self, args: List[str], empty: bool = False) -> ParsedTargets:
        if len(args) > 2:
            raise InputError(f"Too many arguments: expected at most 2, got {len(args)}")
        if not args and not empty:
            raise InputError("Nothing to create: pass an image or use --empty")
        if empty and len(args) > 1:
            raise InputError("--empty cannot be combined with an image name")

        if empty:
            # With --empty the only argument names the instance
            remote, name = self.config.parse_remote(args[0] if args else "")
            return ParsedTargets(remote=remote, name=name, image_remote="", image="")

        image_remote, image = self.config.parse_remote(args[0])
        remote, name = self.config.parse_remote(args[1] if len(args) == 2 else "")
        return ParsedTargets(remote=remote, name=name, image_remote=image_remote, image=image)

    def create(self, args: List[str], options: Optional[InitOptions] = None) -> ProvisionResult:
        if options is None:
            options = InitOptions()

        targets = self.parse_targets(args, options.empty)
        config_overrides = parse_config_flags(options.config)
        overlay = load_stdin_overlay(self.stdin)

        server = self.connector.instance_server(targets.remote)
        if options.target:
            server = server.use_target(options.target)

        if not options.quiet:
            self._print(f"Creating {targets.name}" if targets.name else "Creating the instance")

        image_server = None
        image_info = None
        if options.empty:
            source = InstanceSource(type="none")
        else:
            image_remote, image = guess_image(
                self.config, server, targets.remote, targets.image_remote, targets.image
            )
            if image_remote == targets.remote:
                image_server = server
            else:
                image_server = self.connector.image_server(image_remote)
            resolved = resolve_image_source(self.config, image_remote, image_server, image)
            image_info = resolved.info
            if resolved.alias:
                source = InstanceSource(type="image", alias=resolved.alias)
            else:
                source = InstanceSource(type="image", fingerprint=resolved.info.fingerprint)
            log("DEBUG", f"Using image {image_remote}:{resolved.alias or resolved.info.fingerprint}")

        request = build_request(
            server,
            overlay,
            source,
            name=targets.name,
            instance_type=options.instance_type,
            config_overrides=config_overrides,
            profiles=options.profiles,
            no_profiles=options.no_profiles,
            network=options.network,
            storage=options.storage,
            ephemeral=options.ephemeral,
        )

        if options.empty:
            operation = server.create_instance(request)
            progress = ProgressRenderer("Creating instance: {}", quiet=options.quiet, stream=self.out)
        else:
            operation = server.create_instance_from_image(image_server, image_info, request)
            progress = ProgressRenderer("Retrieving image: {}", quiet=options.quiet, stream=self.out)

        info = self.tracker_factory(progress).wait(operation)

        paths = instance_paths(info)
        if not paths:
            raise RemoteError("Didn't get any affected image, instance or snapshot from server")

        name = request.name
        if len(paths) == 1 and not name:
            name = split_remote_path(paths[0])
            self._print(f"Instance name is: {name}")

        check_network(server, name)
        return ProvisionResult(server=server, name=name)
