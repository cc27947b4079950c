"""Error taxonomy.

Every error below is fatal for a run. The CLI renders ``str(exc)`` as a
single line and exits non-zero.
"""

from __future__ import annotations


class CopyIdError(Exception):
    """Base class for user-facing failures."""


class KeyNotFound(CopyIdError):
    """The local public key file is missing or unreadable."""


class EmptyKeyError(KeyNotFound):
    """The local public key file exists but holds no key text."""


class RemoteConnectionError(CopyIdError, ConnectionError):
    """TCP connect to the remote host failed."""


class HandshakeError(CopyIdError):
    """SSH protocol negotiation failed."""


class AuthenticationFailed(CopyIdError):
    """No authentication strategy produced an authenticated session."""


class RemoteCommandError(CopyIdError):
    """A remote setup command or its channel I/O failed."""


class RemoteFileError(CopyIdError):
    """Open, read, write or chmod of a remote file failed."""

    def __init__(self, operation: str, path: str, reason: object) -> None:
        self.operation = operation
        self.path = path
        self.reason = reason
        super().__init__(f"remote {operation} failed for {path}: {reason}")


class InstallError(CopyIdError):
    """The platform installer could not complete."""
