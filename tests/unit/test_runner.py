"""Unit tests for bootkit.runner.CommandRunner.

These spawn the running interpreter as a stand-in child process.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

from bootkit.gpg.keyring import import_succeeded, key_id_from_import_status
from bootkit.runner import BAD_WORKING_DIRECTORY, COMMAND_NOT_FOUND, CommandRunner

PY = sys.executable


@pytest.fixture
def runner() -> CommandRunner:
    return CommandRunner()


class TestRun:
    def test_captures_stdout_and_stderr(self, runner):
        result = runner.run([PY, "-c", "import sys; print('out'); print('err', file=sys.stderr)"])
        assert result.success
        assert result.stdout.strip() == "out"
        assert result.stderr.strip() == "err"
        assert result.command[0] == PY

    def test_non_zero_exit_does_not_raise(self, runner):
        result = runner.run([PY, "-c", "import sys; sys.exit(3)"])
        assert result.success is False
        assert result.returncode == 3

    def test_pipes_input_to_stdin(self, runner):
        result = runner.run([PY, "-c", "import sys; print(sys.stdin.read().upper())"], input="key text")
        assert result.stdout.strip() == "KEY TEXT"

    def test_env_overlay_is_applied_on_top_of_environment(self, runner, monkeypatch):
        monkeypatch.setenv("BOOTKIT_TEST_INHERITED", "yes")
        script = "import os; print(os.environ['GNUPGHOME'], os.environ['BOOTKIT_TEST_INHERITED'])"
        result = runner.run([PY, "-c", script], env={"GNUPGHOME": "/tmp/isolated"})
        assert result.stdout.split() == ["/tmp/isolated", "yes"]

    def test_working_directory(self, runner, tmp_path: Path):
        result = runner.run([PY, "-c", "import os; print(os.getcwd())"], cwd=tmp_path)
        assert Path(result.stdout.strip()).resolve() == tmp_path.resolve()

    def test_missing_executable_reports_127(self, runner):
        result = runner.run(["bootkit-definitely-not-installed", "--version"])
        assert result.success is False
        assert result.returncode == COMMAND_NOT_FOUND
        assert "command not found" in result.stderr

    def test_missing_working_directory_is_not_command_not_found(self, runner, tmp_path: Path):
        missing = tmp_path / "gone"
        result = runner.run([PY, "-c", "pass"], cwd=missing)
        assert result.success is False
        assert result.returncode == BAD_WORKING_DIRECTORY
        assert str(missing) in result.stderr
        assert "command not found" not in result.stderr

    def test_undecodable_output_is_replaced(self, runner):
        script = "import sys; sys.stdout.buffer.write(b'out \\xff\\n'); sys.stderr.buffer.write(b'gpg: key \\xff\\n')"
        result = runner.run([PY, "-c", script])
        assert result.success
        assert result.stdout == "out �\n"
        assert result.stderr == "gpg: key �\n"

    def test_latin1_user_id_in_import_status(self, runner):
        script = (
            "import sys; "
            "sys.stderr.buffer.write("
            "b'gpg: key ABCD1234ABCD1234: \"J\\xf6rg\" imported\\n'"
            "b'gpg: key ABCD1234ABCD1234: secret key imported\\n')"
        )
        result = runner.run([PY, "-c", script])
        assert import_succeeded(result.stderr)
        assert key_id_from_import_status(result.stderr) == "ABCD1234ABCD1234"

    def test_stdout_only_capture_leaves_stderr_uncaptured(self, runner):
        result = runner.run([PY, "-c", "import sys; print('out'); print('err', file=sys.stderr)"], capture="stdout")
        assert result.stdout.strip() == "out"
        assert result.stderr == ""

    def test_unknown_capture_mode_rejected(self, runner):
        with pytest.raises(ValueError):
            runner.run([PY, "-c", "pass"], capture="everything")


class TestCommandExists:
    def test_interpreter_exists(self, runner):
        assert runner.command_exists(PY)

    def test_missing_command(self, runner):
        assert runner.command_exists("bootkit-definitely-not-installed") is False


class TestAddToPath:
    @pytest.fixture
    def tool_dir(self, tmp_path: Path) -> Path:
        tool = tmp_path / "bootkit-test-tool"
        tool.write_text("#!/bin/sh\necho from-tool\n")
        tool.chmod(0o755)
        return tmp_path

    def test_found_only_after_adding(self, runner, tool_dir):
        assert runner.command_exists("bootkit-test-tool") is False
        runner.add_to_path(tool_dir)
        assert runner.command_exists("bootkit-test-tool") is True

    def test_later_commands_resolve_through_it(self, runner, tool_dir):
        runner.add_to_path(tool_dir)
        result = runner.run(["bootkit-test-tool"])
        assert result.stdout.strip() == "from-tool"

    def test_prepends_and_keeps_existing_path(self, runner, tool_dir, monkeypatch):
        monkeypatch.setenv("PATH", "/usr/bin")
        runner.add_to_path(tool_dir / "bin", tool_dir / "sbin")
        assert runner.env_overlay["PATH"].split(os.pathsep) == [
            str(tool_dir / "bin"),
            str(tool_dir / "sbin"),
            "/usr/bin",
        ]

    def test_call_env_still_applies(self, runner, tool_dir):
        runner.add_to_path(tool_dir)
        result = runner.run([PY, "-c", "import os; print(os.environ['GNUPGHOME'])"], env={"GNUPGHOME": "/tmp/g"})
        assert result.stdout.strip() == "/tmp/g"
