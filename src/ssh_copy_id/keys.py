"""Local public key resolution."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

from ssh_copy_id.errors import EmptyKeyError, KeyNotFound
from ssh_copy_id.models import PublicKey

_LOGGER = logging.getLogger(__name__)

DEFAULT_PUBKEY = Path(".ssh") / "id_rsa.pub"


def default_pubkey_path(home: Optional[Path] = None) -> Path:
    return (home or Path.home()) / DEFAULT_PUBKEY


def resolve_pubkey_path(explicit: Optional[Union[str, Path]] = None, home: Optional[Path] = None) -> Path:
    if explicit:
        return Path(explicit).expanduser()
    return default_pubkey_path(home)


def read_pubkey(path: Path) -> PublicKey:
    """Load and trim the key at ``path``.

    Raises KeyNotFound when the file is missing or unreadable and
    EmptyKeyError when it holds only whitespace. Never touches the network.
    """
    if not path.exists():
        raise KeyNotFound(
            f"Public key file not found: {path}\n"
            "Please generate one with `ssh-keygen`, or specify it with `--key <path>`"
        )
    try:
        text = path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError) as exc:
        raise KeyNotFound(f"Could not read public key file {path}: {exc}") from exc
    if not text:
        raise EmptyKeyError(f"Public key file is empty: {path}")
    _LOGGER.debug("loaded public key path=%s bytes=%d", path, len(text))
    return PublicKey(text)
