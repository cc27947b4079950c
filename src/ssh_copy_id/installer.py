"""Per-user install/uninstall of the ssh-copy-id executable.

Copies the running entry point into a per-user directory and adds that
directory to the persistent user PATH. Independent of the provisioning code.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from ssh_copy_id.errors import InstallError

_LOGGER = logging.getLogger(__name__)

APP_NAME = "ssh-copy-id"
PROFILE_MARKER = "# added by ssh-copy-id --install"


@dataclass(frozen=True)
class InstallResult:
    executable: Path
    directory: Path
    path_updated: bool


def _is_windows(platform: str) -> bool:
    return platform.startswith("win")


def install_dir(platform: str = sys.platform, environ: Optional[Mapping[str, str]] = None, home: Optional[Path] = None) -> Path:
    env = os.environ if environ is None else environ
    home = home or Path.home()
    if _is_windows(platform):
        base = env.get("LOCALAPPDATA")
        root = Path(base) if base else home / "AppData" / "Local"
        return root / "Programs" / APP_NAME
    return home / ".local" / "share" / APP_NAME / "bin"


def current_executable(argv0: Optional[str] = None) -> Path:
    argv0 = argv0 or sys.argv[0]
    found = shutil.which(argv0) if not os.path.dirname(argv0) else argv0
    if not found:
        raise InstallError(f"Could not locate the running executable ({argv0})")
    return Path(found).resolve()


def _run_powershell(script: str) -> bool:
    try:
        proc = subprocess.run(["powershell", "-NoProfile", "-Command", script], capture_output=True, text=True)
    except OSError as exc:
        _LOGGER.warning("powershell unavailable: %s", exc)
        return False
    if proc.returncode != 0:
        _LOGGER.warning("powershell exited rc=%s stderr=%s", proc.returncode, (proc.stderr or "").strip())
    return proc.returncode == 0


def _ps_quote(directory: Path) -> str:
    """Single-quoted PowerShell literal; embedded quotes are doubled."""
    return "'" + str(directory).replace("'", "''") + "'"


def _profile_line(directory: Path) -> str:
    return f'export PATH="{directory}:$PATH"  {PROFILE_MARKER}'


def add_to_user_path(directory: Path, platform: str = sys.platform, home: Optional[Path] = None) -> bool:
    if _is_windows(platform):
        quoted = _ps_quote(directory)
        script = (
            "$userPath = [Environment]::GetEnvironmentVariable('Path', 'User'); "
            f"if (($userPath -split ';') -notcontains {quoted}) {{ "
            f"[Environment]::SetEnvironmentVariable('Path', ($userPath.TrimEnd(';') + ';' + {quoted}), 'User') }}"
        )
        return _run_powershell(script)

    profile = (home or Path.home()) / ".profile"
    line = _profile_line(directory)
    existing = profile.read_text(encoding="utf-8") if profile.exists() else ""
    if line in existing.splitlines():
        return True
    with open(profile, "a", encoding="utf-8") as f:
        if existing and not existing.endswith("\n"):
            f.write("\n")
        f.write(line + "\n")
    return True


def remove_from_user_path(directory: Path, platform: str = sys.platform, home: Optional[Path] = None) -> bool:
    if _is_windows(platform):
        quoted = _ps_quote(directory)
        script = (
            "$userPath = [Environment]::GetEnvironmentVariable('Path', 'User'); "
            f"$newPath = ($userPath -split ';') | Where-Object {{ $_ -ne {quoted} }}; "
            "[Environment]::SetEnvironmentVariable('Path', ($newPath -join ';'), 'User')"
        )
        return _run_powershell(script)

    profile = (home or Path.home()) / ".profile"
    if not profile.exists():
        return True
    line = _profile_line(directory)
    kept = [ln for ln in profile.read_text(encoding="utf-8").splitlines() if ln != line]
    profile.write_text("\n".join(kept) + ("\n" if kept else ""), encoding="utf-8")
    return True


def install_binary(
    executable: Optional[Path] = None,
    platform: str = sys.platform,
    environ: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
) -> InstallResult:
    source = executable or current_executable()
    directory = install_dir(platform, environ, home)
    target = directory / source.name
    try:
        directory.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, target)
    except OSError as exc:
        raise InstallError(f"Failed to copy to {target}: {exc}") from exc
    _LOGGER.info("installed %s -> %s", source, target)

    path_entries = os.environ.get("PATH", "").split(os.pathsep)
    try:
        updated = str(directory) in path_entries or add_to_user_path(directory, platform, home)
    except OSError as exc:
        _LOGGER.warning("could not update PATH: %s", exc)
        updated = False
    return InstallResult(executable=target, directory=directory, path_updated=updated)


def uninstall_binary(
    platform: str = sys.platform,
    environ: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
) -> Path:
    directory = install_dir(platform, environ, home)
    if directory.exists():
        try:
            shutil.rmtree(directory)
        except OSError as exc:
            raise InstallError(f"Could not remove install folder {directory}: {exc}") from exc
    try:
        removed = remove_from_user_path(directory, platform, home)
    except OSError as exc:
        _LOGGER.debug("PATH cleanup failed: %s", exc)
        removed = False
    if not removed:
        _LOGGER.warning("could not remove %s from PATH; remove it manually", directory)
    _LOGGER.info("uninstalled %s", directory)
    return directory
