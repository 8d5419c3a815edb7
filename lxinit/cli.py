"""CLI entry points for lxinit."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import List, Optional

from lxinit.config import Config, load_config
from lxinit.exceptions import InitError, OperationCancelled
from lxinit.provision import InitOptions, Provisioner
from lxinit.remote import RestConnector
from lxinit.utils import log


def show_config(config: Config) -> None:
    """Print the configured remotes and exit."""
    print(f"  default-remote: {config.default_remote}")
    max_key = max(len(name) for name in config.remotes)
    for name in sorted(config.remotes):
        remote = config.remotes[name]
        public = "public" if remote.public else "private"
        print(f"  {name:<{max_key}}  {remote.addr}  (protocol={remote.protocol}, {public})")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lxinit",
        description="Create instances from images",
        epilog="example: lxinit ubuntu:22.04 u1 < config.yaml",
    )
    parser.add_argument("image", nargs="?", help="[<remote>:]<image> (or [<remote>:]<name> with --empty)")
    parser.add_argument("name", nargs="?", help="[<remote>:][<name>]")
    parser.add_argument(
        "-c", "--config", action="append", default=[], metavar="KEY=VALUE",
        help="Config key/value to apply to the new instance",
    )
    parser.add_argument(
        "-p", "--profile", action="append", default=[], metavar="PROFILE",
        help="Profile to apply to the new instance",
    )
    parser.add_argument("-e", "--ephemeral", action="store_true", help="Ephemeral instance")
    parser.add_argument("-n", "--network", default="", help="Network name")
    parser.add_argument("-s", "--storage", default="", help="Storage pool name")
    parser.add_argument("-t", "--type", dest="instance_type", default="", help="Instance type")
    parser.add_argument("--target", default="", help="Cluster member name")
    parser.add_argument("--no-profiles", action="store_true", help="Create the instance with no profiles applied")
    parser.add_argument("--empty", action="store_true", help="Create an empty instance")
    parser.add_argument("-q", "--quiet", action="store_true", help="Don't show progress information")
    parser.add_argument("--config-file", type=Path, default=None, help="Remote configuration file")
    parser.add_argument("--show-config", action="store_true", help="Show configured remotes and exit")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config_file)
    except InitError as exc:
        log("ERROR", str(exc))
        return 1

    if args.show_config:
        show_config(config)
        return 0

    positional = [arg for arg in (args.image, args.name) if arg is not None]
    if not positional and not args.empty:
        parser.print_usage()
        return 0

    options = InitOptions(
        config=args.config,
        profiles=args.profile,
        ephemeral=args.ephemeral,
        network=args.network,
        storage=args.storage,
        target=args.target,
        instance_type=args.instance_type,
        no_profiles=args.no_profiles,
        empty=args.empty,
        quiet=args.quiet,
    )

    provisioner = Provisioner(config, RestConnector(config))
    try:
        provisioner.create(positional, options)
        return 0
    except OperationCancelled as exc:
        log("WARN", str(exc))
        return 130
    except InitError as exc:
        log("ERROR", str(exc))
        return 1
    except Exception as exc:
        log("ERROR", f"Unexpected error: {exc}")
        import traceback

        traceback.print_exc()
        return 1
