"""Utility functions for lxinit."""

from __future__ import annotations

import os
import sys
from typing import Optional, TextIO

from lxinit.constants import TRUTHY

# Advisory and failure lines belong on the error channel.
_STDERR_LEVELS = {"WARN", "ERROR"}


def log(level: str, message: str) -> None:
    """Lightweight structured logging compatible with existing colour expectation."""
    if level == "DEBUG" and not get_env_bool("LOG_VERBOSE"):
        return
    colours = {
        "INFO": "\033[0;34m",
        "WARN": "\033[1;33m",
        "ERROR": "\033[0;31m",
        "SUCCESS": "\033[0;32m",
        "DEBUG": "\033[0;90m",
    }
    colour = colours.get(level, "")
    reset = "\033[0m" if colour else ""
    stream = sys.stderr if level in _STDERR_LEVELS else sys.stdout
    print(f"{colour}[{level}]{reset} {message}", file=stream, flush=True)


def get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(name, default)


def get_env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.lower() in TRUTHY


def is_terminal(stream: TextIO) -> bool:
    """Return True if the stream is attached to an interactive TTY."""
    try:
        return stream.isatty()
    except (AttributeError, ValueError):
        return False


def split_remote_path(path: str) -> str:
    """Return the last component of an API path such as /1.0/instances/c1."""
    return path.rstrip("/").split("/")[-1]
