"""
Exception types shared across sources, controller and routers.
"""


class DbcExplorerError(Exception):
    """Base class for every error raised by dbc_explorer."""


class SourceUnavailable(DbcExplorerError):
    """A metrics source could not produce data (unreachable, erroring, timed out)."""


class EmptyResult(SourceUnavailable):
    """A metrics source answered with zero libraries."""


class MalformedResponse(SourceUnavailable):
    """A metrics source answered with a payload of the wrong shape."""


class FileOpenFailure(DbcExplorerError):
    def __init__(self, path: str, line: int, reason: str):
        super().__init__(f"Could not open {path}:{line} — {reason}")
        self.path = path
        self.line = line
        self.reason = reason


class ProtocolError(DbcExplorerError):
    """An incoming surface message has an unknown command or an invalid payload."""
