"""ssh-copy-id CLI.

Copy the default key:
  ssh-copy-id --user deploy --host 10.0.0.5

Copy a specific key with a visible password prompt:
  ssh-copy-id -u deploy -H build01 -k ~/.ssh/id_ed25519.pub --show-password
"""

from __future__ import annotations

import argparse
import logging
import sys
from importlib import metadata
from pathlib import Path
from typing import List, Optional

import yaml
from dotenv import load_dotenv
from rich.console import Console

from ssh_copy_id.config import Settings
from ssh_copy_id.copy_id import copy_id
from ssh_copy_id.errors import CopyIdError
from ssh_copy_id.installer import install_binary, uninstall_binary
from ssh_copy_id.keys import resolve_pubkey_path
from ssh_copy_id.models import ProvisionOutcome, Target
from ssh_copy_id.prompt import ConsolePasswordPrompt

LOG = logging.getLogger("ssh_copy_id")

OUT = Console(highlight=False, soft_wrap=True)
ERR = Console(stderr=True, highlight=False, soft_wrap=True)


def _version() -> str:
    try:
        return metadata.version("ssh-copy-id-py")
    except metadata.PackageNotFoundError:
        return "0+unknown"


def configure_logging(level: str) -> None:
    """Configure logging to stderr for CLI runs."""
    lvl = (level or "WARNING").upper()
    numeric = getattr(logging, lvl, logging.WARNING)
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
        stream=sys.stderr,
    )
    if numeric > logging.DEBUG:
        logging.getLogger("paramiko").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="ssh-copy-id",
        description="Copies your SSH public key to a remote server via SSH",
    )
    p.add_argument("-u", "--user", help="Remote username")
    p.add_argument("-H", "--host", help="Remote hostname or address (port 22)")
    p.add_argument("-k", "--key", type=Path, default=None, help="Public key file (default: ~/.ssh/id_rsa.pub)")
    p.add_argument("--show-password", action="store_true", help="Echo the password while typing it.")
    p.add_argument("--install", action="store_true", help="Install this program for the current user and exit.")
    p.add_argument("--uninstall", action="store_true", help="Remove a previous --install and exit.")
    p.add_argument("--config", type=Path, default=None, help="YAML config file (default: ~/.config/ssh-copy-id/config.yaml)")
    p.add_argument(
        "--log-level",
        default=None,
        choices=["debug", "info", "warning", "error"],
        help="Logging level (default: warning).",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {_version()}")
    return p


def handle_install() -> int:
    result = install_binary()
    if not result.path_updated:
        ERR.print("Failed to update PATH. Please add it manually:", style="yellow")
        ERR.print(str(result.directory), markup=False)
    OUT.print("Installed ssh-copy-id to:")
    OUT.print(str(result.executable), markup=False)
    OUT.print("You can now run `ssh-copy-id` from any new terminal!", markup=False)
    return 0


def handle_uninstall() -> int:
    uninstall_binary()
    OUT.print("Uninstalled ssh-copy-id.")
    return 0


def handle_copy(args: argparse.Namespace, settings: Settings) -> int:
    target = Target(host=args.host, user=args.user)
    key_path = resolve_pubkey_path(args.key)
    LOG.info("copy start target=%s key=%s", target.user_host, key_path)

    outcome = copy_id(target, key_path, ConsolePasswordPrompt(args.show_password), settings)
    if outcome is ProvisionOutcome.ALREADY_PRESENT:
        OUT.print("Key already exists on remote server. Skipping.")
    else:
        OUT.print("Key added to remote authorized_keys.", style="green")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    load_dotenv()

    # Install and uninstall never read the config file.
    if args.install or args.uninstall:
        configure_logging(args.log_level or "WARNING")
        try:
            return handle_install() if args.install else handle_uninstall()
        except CopyIdError as exc:
            LOG.debug("install failed", exc_info=True)
            ERR.print(f"Error: {exc}", style="red", markup=False)
            return 1

    if not (args.user and args.host):
        parser.error("--user and --host are required")

    try:
        settings = Settings.load(args.config)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        ERR.print(f"Invalid configuration: {exc}", style="red", markup=False)
        return 1
    configure_logging(args.log_level or settings.log_level)

    try:
        return handle_copy(args, settings)
    except CopyIdError as exc:
        LOG.debug("run failed", exc_info=True)
        ERR.print(f"Error: {exc}", style="red", markup=False)
        return 1
    except KeyboardInterrupt:
        ERR.print("Interrupted.", style="red")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
