"""Custom exceptions for lxinit."""


class InitError(RuntimeError):
    """Raised on unrecoverable configuration or runtime errors."""


class InputError(InitError):
    """Malformed local input: flags, positional arguments or piped YAML."""


class ResolutionError(InitError):
    """A named network, storage pool or image could not be resolved."""


class RemoteError(InitError):
    """The remote service or its transport reported an error."""

    def __init__(self, message: str, status_code: int = 0) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(RemoteError):
    """The requested remote object does not exist."""

    def __init__(self, message: str = "not found") -> None:
        super().__init__(message, status_code=404)


class OperationError(InitError):
    """A background operation finished in a failed state."""


class OperationCancelled(OperationError):
    """The wait for a background operation was interrupted locally."""
