"""Remote provisioning of ~/.ssh/authorized_keys.

Setup runs as four independent idempotent commands, then the key is
appended through SFTP after reading the whole existing file:

    CONNECTED_AUTHENTICATED -> SETUP_EXECUTED -> KEY_CHECKED -> SKIPPED | APPENDED

Nothing is rolled back on failure; every step is safe to rerun.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Protocol, Tuple

import paramiko

from ssh_copy_id.errors import RemoteFileError
from ssh_copy_id.models import AUTHORIZED_KEYS_PATH, ProvisionOutcome, ProvisionState, PublicKey

_LOGGER = logging.getLogger(__name__)

AUTHORIZED_KEYS_MODE = 0o600

_IO_ERRORS = (OSError, paramiko.SSHException)


@dataclass(frozen=True)
class SetupStep:
    name: str
    command: str


SETUP_STEPS: Tuple[SetupStep, ...] = (
    SetupStep("ensure-dir", "mkdir -p ~/.ssh"),
    SetupStep("chmod-dir", "chmod 700 ~/.ssh"),
    SetupStep("ensure-file", "touch ~/.ssh/authorized_keys"),
    SetupStep("chmod-file", "chmod 600 ~/.ssh/authorized_keys"),
)


class RemoteSession(Protocol):
    def run_command(self, command: str) -> Tuple[int, str]:
        raise NotImplementedError

    def open_sftp(self) -> Any:
        raise NotImplementedError


def format_key_block(key: PublicKey) -> str:
    return f"\n{key.text}\n"


class Provisioner:
    """Drive one authenticated session through setup and the key append."""

    def __init__(self, session: RemoteSession, path: str = AUTHORIZED_KEYS_PATH) -> None:
        self.session = session
        self.path = path
        self.state = ProvisionState.CONNECTED_AUTHENTICATED
        self.completed_steps: List[str] = []

    def run_setup(self) -> None:
        for step in SETUP_STEPS:
            _LOGGER.debug("setup step=%s", step.name)
            self.session.run_command(step.command)
            self.completed_steps.append(step.name)
        self.state = ProvisionState.SETUP_EXECUTED

    def read_existing(self) -> Tuple[str, bool]:
        """Return (content, existed). A missing file reads as empty."""
        sftp = self.session.open_sftp()
        try:
            handle = sftp.open(self.path, "r")
        except FileNotFoundError:
            _LOGGER.debug("%s missing after setup; treating as empty", self.path)
            return "", False
        except _IO_ERRORS as exc:
            raise RemoteFileError("open", self.path, exc) from exc

        try:
            with handle:
                data = handle.read()
        except _IO_ERRORS as exc:
            raise RemoteFileError("read", self.path, exc) from exc
        if isinstance(data, bytes):
            data = data.decode("utf-8", errors="replace")
        return data, True

    def append_key(self, key: PublicKey) -> ProvisionOutcome:
        if self.state is not ProvisionState.SETUP_EXECUTED:
            raise RuntimeError(f"append_key requires setup to have run (state={self.state.value})")

        existing, existed = self.read_existing()
        self.state = ProvisionState.KEY_CHECKED
        if key.text in existing:
            _LOGGER.info("key already present in %s", self.path)
            self.state = ProvisionState.SKIPPED
            return ProvisionOutcome.ALREADY_PRESENT

        sftp = self.session.open_sftp()
        try:
            handle = sftp.open(self.path, "a")
        except _IO_ERRORS as exc:
            raise RemoteFileError("open for append", self.path, exc) from exc

        try:
            with handle:
                if not existed:
                    sftp.chmod(self.path, AUTHORIZED_KEYS_MODE)
                handle.write(format_key_block(key).encode("utf-8"))
        except _IO_ERRORS as exc:
            raise RemoteFileError("write", self.path, exc) from exc

        _LOGGER.info("key appended to %s comment=%s", self.path, key.comment or "<none>")
        self.state = ProvisionState.APPENDED
        return ProvisionOutcome.ADDED

    def run(self, key: PublicKey) -> ProvisionOutcome:
        self.run_setup()
        return self.append_key(key)
