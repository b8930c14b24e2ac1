"""Application-level exception types.

Convention:
- ``PathError``: a local or remote path cannot be fingerprinted or served
  the way the caller asked (not a file, not a directory, missing, unreadable,
  escapes the store root).  Raised by probing and walking, and by the remote
  client when the server reports the same condition.
- ``TransportError`` / ``AuthorizationError`` / ``StorageError``: failures of
  a single remote call.  They abort one transfer, never a whole sync pass.
- ``InternalServerError``: for server errors whose details must never reach
  clients.  The global handler logs the full message at ERROR and returns a
  generic "Internal server error" (500).
"""

from __future__ import annotations

from enum import StrEnum


class SyncError(Exception):
    """Base class for errors reported per file during a sync pass."""


class PathErrorKind(StrEnum):
    NOT_A_FILE = "not_a_file"
    NOT_A_DIRECTORY = "not_a_directory"
    NOT_FOUND = "not_found"
    UNREADABLE = "unreadable"
    OUTSIDE_ROOT = "outside_root"


class PathError(SyncError):
    """A path cannot be fingerprinted or transferred as requested."""

    def __init__(self, path: str, kind: PathErrorKind, detail: str = "") -> None:
        self.path = path
        self.kind = kind
        self.detail = detail
        message = f"{kind.value}: {path}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class TransportError(SyncError):
    """The remote store could not be reached or did not answer in time."""


class AuthorizationError(SyncError):
    """The remote store rejected the shared credential."""


class StorageError(SyncError):
    """The remote store could not persist or serve file content."""


class InternalServerError(Exception):
    """Raised for internal errors whose details must not be exposed to clients.

    The global exception handler in ``backend/main.py`` catches this, logs
    the full message server-side, and returns HTTP 500 with a generic
    ``"Internal server error"`` detail.
    """
