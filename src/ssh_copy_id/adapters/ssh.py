"""SSH transport and session adapter (paramiko)."""

from __future__ import annotations

import base64
import hashlib
import logging
import socket
from pathlib import Path
from typing import Iterable, List, Optional, Set, Tuple

import paramiko

from ssh_copy_id.errors import (
    HandshakeError,
    RemoteCommandError,
    RemoteConnectionError,
    RemoteFileError,
)
from ssh_copy_id.models import Target

_LOGGER = logging.getLogger(__name__)

# Private key loaders tried for each default identity file.
_KEY_CLASSES = {
    "id_ed25519": paramiko.Ed25519Key,
    "id_ecdsa": paramiko.ECDSAKey,
    "id_rsa": paramiko.RSAKey,
}


def _fingerprint(key: paramiko.PKey) -> str:
    digest = hashlib.sha256(key.asbytes()).digest()
    return "SHA256:" + base64.b64encode(digest).decode("ascii").rstrip("=")


def _load_private_key(path: Path) -> Optional[paramiko.PKey]:
    """Load an unencrypted private key, or return None if it cannot be used."""
    classes = [_KEY_CLASSES[path.name]] if path.name in _KEY_CLASSES else list(_KEY_CLASSES.values())
    for cls in classes:
        try:
            return cls.from_private_key_file(str(path))
        except paramiko.PasswordRequiredException:
            _LOGGER.debug("skipping encrypted key path=%s", path)
            return None
        except (paramiko.SSHException, OSError, ValueError) as exc:
            _LOGGER.debug("key load failed path=%s type=%s err=%s", path, cls.__name__, exc)
    return None


class SSHSession:
    """One SSH transport to one target, used for the whole run."""

    def __init__(self, target: Target, transport: paramiko.Transport, command_timeout: float = 30) -> None:
        self.target = target
        self.transport = transport
        self.command_timeout = command_timeout
        self._sftp: Optional[paramiko.SFTPClient] = None
        # Public blobs already offered; each offer counts against MaxAuthTries.
        self._offered: Set[bytes] = set()

    def __enter__(self) -> "SSHSession":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def is_authenticated(self) -> bool:
        return self.transport.is_authenticated()

    # -------------------------
    # authentication primitives
    # -------------------------
    def auth_agent_keys(self, user: str) -> bool:
        """Offer every key held by the local SSH agent."""
        agent = paramiko.Agent()
        try:
            keys = agent.get_keys()
            _LOGGER.debug("agent offered %d key(s)", len(keys))
            for key in keys:
                self._offered.add(key.asbytes())
                try:
                    self.transport.auth_publickey(user, key)
                except paramiko.AuthenticationException:
                    _LOGGER.debug("agent key rejected fingerprint=%s", _fingerprint(key))
                    continue
                if self.is_authenticated:
                    return True
        finally:
            agent.close()
        return False

    def auth_key_files(self, user: str, paths: Iterable[Path]) -> bool:
        """Try unencrypted private keys from ``paths`` that exist."""
        for path in paths:
            if not path.is_file():
                continue
            key = _load_private_key(path)
            if key is None:
                continue
            blob = key.asbytes()
            if blob in self._offered:
                _LOGGER.debug("key file already offered by agent path=%s", path)
                continue
            self._offered.add(blob)
            try:
                self.transport.auth_publickey(user, key)
            except paramiko.AuthenticationException:
                _LOGGER.debug("key file rejected path=%s", path)
                continue
            if self.is_authenticated:
                _LOGGER.debug("authenticated with key file path=%s", path)
                return True
        return False

    def auth_password(self, user: str, password: str) -> None:
        """Raises paramiko.AuthenticationException when the password is rejected."""
        self.transport.auth_password(user, password)

    # -------------------------
    # remote operations
    # -------------------------
    def run_command(self, command: str) -> Tuple[int, str]:
        """Run ``command`` remotely, drain its output and wait for it to exit.

        Returns (exit_status, combined_output). A non-zero exit status is
        raised as RemoteCommandError.
        """
        _LOGGER.debug("[ssh] $ %s", command)
        try:
            channel = self.transport.open_session(timeout=self.command_timeout)
        except (paramiko.SSHException, OSError) as exc:
            raise RemoteCommandError(f"could not open channel for `{command}`: {exc}") from exc

        try:
            channel.settimeout(self.command_timeout)
            channel.set_combine_stderr(True)
            channel.exec_command(command)
            chunks: List[bytes] = []
            while True:
                data = channel.recv(32768)
                if not data:
                    break
                chunks.append(data)
            channel.shutdown_write()
            status = channel.recv_exit_status()
        except socket.timeout as exc:
            raise RemoteCommandError(f"`{command}` timed out after {self.command_timeout}s") from exc
        except (paramiko.SSHException, OSError) as exc:
            raise RemoteCommandError(f"`{command}` failed: {exc}") from exc
        finally:
            channel.close()

        output = b"".join(chunks).decode("utf-8", errors="replace")
        if status != 0:
            detail = output.strip() or "<no output>"
            raise RemoteCommandError(f"`{command}` exited with status {status}: {detail}")
        return status, output

    def open_sftp(self) -> paramiko.SFTPClient:
        if self._sftp is None:
            try:
                sftp = paramiko.SFTPClient.from_transport(self.transport)
            except (paramiko.SSHException, OSError) as exc:
                raise RemoteFileError("sftp open", self.target.user_host, exc) from exc
            if sftp is None:
                raise RemoteFileError("sftp open", self.target.user_host, "subsystem unavailable")
            sftp.get_channel().settimeout(self.command_timeout)
            self._sftp = sftp
        return self._sftp

    def close(self) -> None:
        if self._sftp is not None:
            try:
                self._sftp.close()
            except (paramiko.SSHException, OSError):
                _LOGGER.debug("sftp close failed", exc_info=True)
            self._sftp = None
        self.transport.close()


def open_session(
    target: Target,
    connect_timeout: float = 10,
    auth_timeout: float = 10,
    command_timeout: float = 30,
) -> SSHSession:
    """Connect to ``target`` and complete the SSH handshake.

    The returned session is not yet authenticated.
    """
    _LOGGER.info("connecting to %s", target.address)
    try:
        sock = socket.create_connection((target.host, target.port), timeout=connect_timeout)
    except OSError as exc:
        raise RemoteConnectionError(f"Could not connect to {target.address}: {exc}") from exc

    transport = None
    try:
        transport = paramiko.Transport(sock)
        transport.banner_timeout = auth_timeout
        transport.auth_timeout = auth_timeout
        transport.start_client(timeout=auth_timeout)
    except (paramiko.SSHException, EOFError, OSError) as exc:
        if transport is not None:
            transport.close()
        sock.close()
        raise HandshakeError(f"SSH handshake with {target.address} failed: {exc}") from exc

    host_key = transport.get_remote_server_key()
    _LOGGER.debug("host key type=%s fingerprint=%s", host_key.get_name(), _fingerprint(host_key))
    return SSHSession(target, transport, command_timeout=command_timeout)
