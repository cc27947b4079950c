"""Run the whole key copy against one target."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional, Sequence

from ssh_copy_id.adapters.ssh import open_session
from ssh_copy_id.auth import AuthStrategy, authenticate, default_key_paths, default_strategies
from ssh_copy_id.config import Settings
from ssh_copy_id.keys import read_pubkey
from ssh_copy_id.models import ProvisionOutcome, Target
from ssh_copy_id.prompt import PasswordPrompt
from ssh_copy_id.provision import Provisioner

_LOGGER = logging.getLogger(__name__)


def copy_id(
    target: Target,
    key_path: Path,
    prompt: PasswordPrompt,
    settings: Settings,
    *,
    session_factory: Optional[Callable[..., object]] = None,
    strategies: Optional[Sequence[AuthStrategy]] = None,
) -> ProvisionOutcome:
    # Key first: a missing key must abort before any connection attempt.
    key = read_pubkey(key_path)

    if strategies is None:
        key_paths = default_key_paths(settings.default_key_files) if settings.look_for_keys else []
        strategies = default_strategies(prompt, allow_agent=settings.allow_agent, key_paths=key_paths)

    factory = session_factory or open_session
    session = factory(
        target,
        connect_timeout=settings.connect_timeout,
        auth_timeout=settings.auth_timeout,
        command_timeout=settings.command_timeout,
    )
    try:
        authenticate(session, target.user, strategies)
        outcome = Provisioner(session).run(key)
    finally:
        session.close()
    _LOGGER.info("copy_id finished target=%s outcome=%s", target.user_host, outcome.value)
    return outcome
