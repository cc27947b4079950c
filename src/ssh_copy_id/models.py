"""Core data types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

SSH_PORT = 22

# Relative to the login home: SFTP resolves relative paths there, shells via ~.
AUTHORIZED_KEYS_PATH = ".ssh/authorized_keys"


@dataclass(frozen=True)
class Target:
    host: str
    user: str
    port: int = SSH_PORT

    @property
    def user_host(self) -> str:
        return f"{self.user}@{self.host}"

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class PublicKey:
    """Public key text, already trimmed of surrounding whitespace."""

    text: str

    @property
    def comment(self) -> str:
        parts = self.text.split(None, 2)
        return parts[2] if len(parts) == 3 else ""


class ProvisionOutcome(str, Enum):
    ADDED = "added"
    ALREADY_PRESENT = "already_present"


class ProvisionState(str, Enum):
    CONNECTED_AUTHENTICATED = "connected_authenticated"
    SETUP_EXECUTED = "setup_executed"
    KEY_CHECKED = "key_checked"
    SKIPPED = "skipped"
    APPENDED = "appended"
