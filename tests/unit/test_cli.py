import io
import os
import sys
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from unittest import mock

ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
SRC_DIR = os.path.join(ROOT_DIR, "src")
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

from remote_fakes import FakeSession  # noqa: E402
from ssh_copy_id import cli  # noqa: E402
from ssh_copy_id.config import Settings  # noqa: E402
from ssh_copy_id.errors import AuthenticationFailed  # noqa: E402
from ssh_copy_id.models import ProvisionOutcome, Target  # noqa: E402


class TestCli(unittest.TestCase):
    def setUp(self) -> None:
        patcher = mock.patch.object(cli.Settings, "load", return_value=Settings.from_dict({}))
        patcher.start()
        self.addCleanup(patcher.stop)

    def run_cli(self, argv):
        out, err = io.StringIO(), io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            code = cli.main(argv)
        return code, out.getvalue(), err.getvalue()

    def test_missing_key_exits_nonzero_without_connecting(self) -> None:
        with tempfile.TemporaryDirectory() as tmp, mock.patch("ssh_copy_id.copy_id.open_session") as connect:
            code, _, err = self.run_cli(["--user", "deploy", "--host", "h", "--key", str(Path(tmp) / "no.pub")])
        self.assertEqual(code, 1)
        self.assertIn("Public key file not found", err)
        connect.assert_not_called()

    def test_user_and_host_required(self) -> None:
        with self.assertRaises(SystemExit) as ctx, redirect_stderr(io.StringIO()):
            cli.main(["--host", "h"])
        self.assertEqual(ctx.exception.code, 2)

    def test_copy_reports_outcome(self) -> None:
        with mock.patch.object(cli, "copy_id", return_value=ProvisionOutcome.ALREADY_PRESENT) as run:
            code, out, _ = self.run_cli(["-u", "deploy", "-H", "h", "-k", "/tmp/k.pub", "--show-password"])
        self.assertEqual(code, 0)
        self.assertIn("already exists", out)
        target, key_path, prompt, _settings = run.call_args[0]
        self.assertEqual(target, Target(host="h", user="deploy"))
        self.assertEqual(key_path, Path("/tmp/k.pub"))
        self.assertTrue(prompt.show_password)

    def test_added_message(self) -> None:
        with mock.patch.object(cli, "copy_id", return_value=ProvisionOutcome.ADDED):
            code, out, _ = self.run_cli(["-u", "deploy", "-H", "h"])
        self.assertEqual(code, 0)
        self.assertIn("Key added", out)

    def test_auth_failure_is_rendered(self) -> None:
        with mock.patch.object(cli, "copy_id", side_effect=AuthenticationFailed("SSH authentication failed for deploy")):
            code, _, err = self.run_cli(["-u", "deploy", "-H", "h"])
        self.assertEqual(code, 1)
        self.assertIn("SSH authentication failed for deploy", err)

    def test_install_short_circuits(self) -> None:
        with mock.patch.object(cli, "handle_install", return_value=0) as install, mock.patch.object(cli, "copy_id") as run:
            code, _, _ = self.run_cli(["--install"])
        self.assertEqual(code, 0)
        install.assert_called_once()
        run.assert_not_called()

    def test_uninstall(self) -> None:
        with mock.patch.object(cli, "uninstall_binary") as uninstall:
            code, out, _ = self.run_cli(["--uninstall"])
        self.assertEqual(code, 0)
        self.assertIn("Uninstalled", out)
        uninstall.assert_called_once()

    def test_empty_stdin_at_password_prompt_exits_one(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            key_path = Path(tmp) / "id_rsa.pub"
            key_path.write_text("ssh-rsa AAAAB3 me@laptop\n", encoding="utf-8")
            with mock.patch("ssh_copy_id.copy_id.open_session", return_value=FakeSession(agent_ok=False)), mock.patch(
                "sys.stdin", io.StringIO("")
            ):
                code, _, err = self.run_cli(["-u", "deploy", "-H", "h", "-k", str(key_path), "--show-password"])
        self.assertEqual(code, 1)
        self.assertIn("no password entered", err)

    def test_install_and_uninstall_ignore_broken_config(self) -> None:
        with mock.patch.object(cli.Settings, "load", side_effect=ValueError("bad yaml")) as load, mock.patch.object(
            cli, "uninstall_binary"
        ) as uninstall:
            code, out, err = self.run_cli(["--uninstall"])
        self.assertEqual(code, 0)
        self.assertIn("Uninstalled", out)
        self.assertNotIn("Invalid configuration", err)
        uninstall.assert_called_once()
        load.assert_not_called()

    def test_copy_still_reports_broken_config(self) -> None:
        with mock.patch.object(cli.Settings, "load", side_effect=ValueError("bad yaml")), mock.patch.object(
            cli, "copy_id"
        ) as run:
            code, _, err = self.run_cli(["-u", "deploy", "-H", "h"])
        self.assertEqual(code, 1)
        self.assertIn("Invalid configuration: bad yaml", err)
        run.assert_not_called()


if __name__ == "__main__":
    unittest.main()
