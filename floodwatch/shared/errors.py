"""Exception types shared across floodwatch services.

Nothing here is fatal to a service loop: each error has a fallback at the
place it is caught (substitute a sentinel, drop a line, drop a sample,
reconnect a link).
"""


class FloodwatchError(Exception):
    """Base class for floodwatch errors."""

    pass


class SensorFault(FloodwatchError):
    """Raised by an echo source when no usable echo was received."""

    pass


class ProtocolDecodeError(FloodwatchError, ValueError):
    """Raised when a line from the node cannot be decoded."""

    def __init__(self, message: str, line: str = ""):
        super().__init__(message)
        self.line = line


class LinkDown(FloodwatchError):
    """Raised when a link (network or store session) is unavailable."""

    def __init__(self, link: str, message: str = ""):
        super().__init__(message or f"{link} link is down")
        self.link = link


class StoreError(FloodwatchError):
    """Raised when a cloud store operation fails."""

    def __init__(self, message: str, path: str = ""):
        super().__init__(message)
        self.path = path


class PartialUploadFailure(FloodwatchError):
    """Raised when only some of an upload's store writes succeeded."""

    def __init__(self, failed_paths, written_paths):
        self.failed_paths = list(failed_paths)
        self.written_paths = list(written_paths)
        super().__init__(
            f"Upload incomplete: failed {', '.join(self.failed_paths)}; "
            f"written {', '.join(self.written_paths) or 'none'}"
        )
