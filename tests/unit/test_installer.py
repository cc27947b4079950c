import os
import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock

ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
SRC_DIR = os.path.join(ROOT_DIR, "src")
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

from ssh_copy_id.installer import (  # noqa: E402
    PROFILE_MARKER,
    add_to_user_path,
    install_binary,
    install_dir,
    remove_from_user_path,
    uninstall_binary,
)


class TestInstaller(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.home = Path(self._tmp.name)
        self.exe = self.home / "dist" / "ssh-copy-id"
        self.exe.parent.mkdir()
        self.exe.write_text("#!/bin/sh\n", encoding="utf-8")

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _profile_lines(self):
        return [ln for ln in (self.home / ".profile").read_text(encoding="utf-8").splitlines() if PROFILE_MARKER in ln]

    def test_windows_dir_uses_local_app_data(self) -> None:
        path = install_dir("win32", {"LOCALAPPDATA": "C:/Users/u/AppData/Local"}, self.home)
        self.assertEqual(path, Path("C:/Users/u/AppData/Local") / "Programs" / "ssh-copy-id")

    def test_posix_install_copies_and_updates_profile_once(self) -> None:
        (self.home / ".profile").write_text("umask 022", encoding="utf-8")
        result = install_binary(self.exe, platform="linux", environ={}, home=self.home)
        install_binary(self.exe, platform="linux", environ={}, home=self.home)
        self.assertTrue(result.executable.is_file())
        self.assertEqual(result.directory, self.home / ".local" / "share" / "ssh-copy-id" / "bin")
        self.assertTrue(result.path_updated)
        self.assertEqual(len(self._profile_lines()), 1)
        self.assertTrue((self.home / ".profile").read_text(encoding="utf-8").startswith("umask 022\n"))

    def test_posix_uninstall_removes_dir_and_profile_line(self) -> None:
        result = install_binary(self.exe, platform="linux", environ={}, home=self.home)
        uninstall_binary(platform="linux", environ={}, home=self.home)
        self.assertFalse(result.directory.exists())
        self.assertEqual(self._profile_lines(), [])

    def test_windows_path_update_uses_powershell(self) -> None:
        env = {"LOCALAPPDATA": str(self.home / "Local")}
        with mock.patch("ssh_copy_id.installer.subprocess.run") as run:
            run.return_value.returncode = 1
            run.return_value.stderr = "denied"
            result = install_binary(self.exe, platform="win32", environ=env, home=self.home)
        self.assertFalse(result.path_updated)
        args = run.call_args[0][0]
        self.assertEqual(args[:3], ["powershell", "-NoProfile", "-Command"])
        self.assertIn("SetEnvironmentVariable", args[3])

    def test_windows_path_with_quote_is_escaped(self) -> None:
        directory = Path("C:/Users/O'Brien/AppData/Local/Programs/ssh-copy-id")
        with mock.patch("ssh_copy_id.installer.subprocess.run") as run:
            run.return_value.returncode = 0
            self.assertTrue(add_to_user_path(directory, platform="win32"))
            self.assertTrue(remove_from_user_path(directory, platform="win32"))
        self.assertEqual(run.call_count, 2)
        for call in run.call_args_list:
            script = call[0][0][3]
            self.assertIn("O''Brien", script)
            self.assertNotIn("/O'Brien", script)


if __name__ == "__main__":
    unittest.main()
