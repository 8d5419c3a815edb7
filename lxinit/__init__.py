"""lxinit package."""

__all__ = [
    "cli",
    "config",
    "constants",
    "exceptions",
    "images",
    "models",
    "network",
    "operations",
    "provision",
    "remote",
    "request",
    "stdin",
    "utils",
]
