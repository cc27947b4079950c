"""Authentication strategies, tried in order until one succeeds."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Protocol, Sequence

import paramiko

from ssh_copy_id.errors import AuthenticationFailed
from ssh_copy_id.prompt import PasswordPrompt

_LOGGER = logging.getLogger(__name__)


class AuthSession(Protocol):
    """What a strategy needs from a session."""

    target: object

    @property
    def is_authenticated(self) -> bool:
        raise NotImplementedError

    def auth_agent_keys(self, user: str) -> bool:
        raise NotImplementedError

    def auth_key_files(self, user: str, paths: Iterable[Path]) -> bool:
        raise NotImplementedError

    def auth_password(self, user: str, password: str) -> None:
        raise NotImplementedError


class AuthStrategy(Protocol):
    name: str

    def attempt(self, session: AuthSession, username: str) -> bool:
        """Return True once the session is authenticated."""
        raise NotImplementedError


class AgentAuth:
    """Passwordless auth through a running SSH agent. Failures are silent."""

    name = "agent"

    def attempt(self, session: AuthSession, username: str) -> bool:
        try:
            return session.auth_agent_keys(username)
        except (paramiko.SSHException, OSError) as exc:
            _LOGGER.debug("agent auth unavailable: %s", exc)
            return False


class DefaultKeyAuth:
    """Passwordless auth with unencrypted default identity files. Failures are silent."""

    name = "key-files"

    def __init__(self, paths: Sequence[Path]) -> None:
        self.paths = list(paths)

    def attempt(self, session: AuthSession, username: str) -> bool:
        try:
            return session.auth_key_files(username, self.paths)
        except (paramiko.SSHException, OSError) as exc:
            _LOGGER.debug("key file auth unavailable: %s", exc)
            return False


class PasswordAuth:
    """Prompt once, then authenticate with the password. Rejection is fatal."""

    name = "password"

    def __init__(self, prompt: PasswordPrompt) -> None:
        self.prompt = prompt

    def attempt(self, session: AuthSession, username: str) -> bool:
        host = getattr(session.target, "host", "")
        try:
            password = self.prompt(username, host)
        except EOFError as exc:
            raise AuthenticationFailed(f"no password entered for {username}@{host}") from exc
        try:
            session.auth_password(username, password)
        except paramiko.AuthenticationException as exc:
            raise AuthenticationFailed(f"Password authentication failed for {username}@{host}") from exc
        except (paramiko.SSHException, OSError) as exc:
            raise AuthenticationFailed(f"Password authentication for {username}@{host} aborted: {exc}") from exc
        return session.is_authenticated


def default_key_paths(names: Iterable[str], home: Optional[Path] = None) -> List[Path]:
    ssh_dir = (home or Path.home()) / ".ssh"
    return [ssh_dir / name for name in names]


def default_strategies(
    prompt: PasswordPrompt,
    *,
    allow_agent: bool = True,
    key_paths: Sequence[Path] = (),
) -> List[AuthStrategy]:
    strategies: List[AuthStrategy] = []
    if allow_agent:
        strategies.append(AgentAuth())
    if key_paths:
        strategies.append(DefaultKeyAuth(key_paths))
    strategies.append(PasswordAuth(prompt))
    return strategies


def authenticate(session: AuthSession, username: str, strategies: Sequence[AuthStrategy]) -> str:
    """Run ``strategies`` in order and return the name of the one that succeeded.

    The session's own authenticated flag is checked again afterwards, so a
    strategy reporting success on a half-authenticated transport still fails.
    """
    winner = None
    for strategy in strategies:
        _LOGGER.debug("auth attempt strategy=%s user=%s", strategy.name, username)
        if strategy.attempt(session, username):
            winner = strategy.name
            break
        _LOGGER.debug("auth strategy=%s did not authenticate", strategy.name)

    if winner is None or not session.is_authenticated:
        raise AuthenticationFailed(f"SSH authentication failed for {username}")
    _LOGGER.info("authenticated user=%s strategy=%s", username, winner)
    return winner
