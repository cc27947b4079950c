"""Interactive password prompt."""

from __future__ import annotations

import getpass
from typing import Callable, Protocol


class PasswordPrompt(Protocol):
    def __call__(self, user: str, host: str) -> str:
        """Return a password for user@host."""
        raise NotImplementedError


class ConsolePasswordPrompt:
    """Read a password from the terminal.

    Hidden mode (the default) suppresses echo via getpass. Visible mode uses
    plain ``input`` for terminals where getpass cannot disable echo.
    """

    def __init__(
        self,
        show_password: bool = False,
        *,
        hidden_reader: Callable[[str], str] = getpass.getpass,
        visible_reader: Callable[[str], str] = input,
    ) -> None:
        self.show_password = show_password
        self._hidden_reader = hidden_reader
        self._visible_reader = visible_reader

    def __call__(self, user: str, host: str) -> str:
        text = f"Enter password for {user}@{host}: "
        if self.show_password:
            return self._visible_reader(text).strip()
        return self._hidden_reader(text)
