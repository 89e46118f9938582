"""Tests for shared.build_info module."""

import importlib
import subprocess
from unittest.mock import patch

import shared.build_info as build_info_module


class TestGitShortSha:
    def test_returns_stripped_output_from_git(self):
        with patch("subprocess.check_output", return_value="abc1234\n"):
            assert build_info_module._git_short_sha() == "abc1234"

    def test_returns_dev_when_git_not_found(self):
        with patch("subprocess.check_output", side_effect=FileNotFoundError):
            assert build_info_module._git_short_sha() == "dev"

    def test_returns_dev_when_git_fails(self):
        with patch(
            "subprocess.check_output",
            side_effect=subprocess.CalledProcessError(128, "git"),
        ):
            assert build_info_module._git_short_sha() == "dev"


class TestModuleLevelConstants:
    def test_server_name(self):
        assert build_info_module.SERVER_NAME == "Lorl Server Host"

    def test_app_version_reads_from_env(self):
        with patch.dict("os.environ", {"APP_VERSION": "1.2.3"}):
            importlib.reload(build_info_module)
            assert build_info_module.APP_VERSION == "1.2.3"
        # Restore
        importlib.reload(build_info_module)

    def test_git_commit_reads_from_env(self):
        with patch.dict("os.environ", {"GIT_COMMIT": "abc1234"}):
            importlib.reload(build_info_module)
            assert build_info_module.GIT_COMMIT == "abc1234"
        # Restore
        importlib.reload(build_info_module)

    def test_git_commit_falls_back_to_git(self):
        with (
            patch.dict("os.environ", {"GIT_COMMIT": ""}),
            patch("subprocess.check_output", return_value="feed123\n"),
        ):
            importlib.reload(build_info_module)
            assert build_info_module.GIT_COMMIT == "feed123"
        # Restore
        importlib.reload(build_info_module)
