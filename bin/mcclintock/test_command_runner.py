import sys

import pytest

from mcclintock.errors import ExternalToolFailure
from mcclintock.utils.command_runner import COMMAND_NOT_FOUND, CommandRunner


def test_success_with_stdout_redirect(tmp_path):
    out = tmp_path / "out.txt"
    runner = CommandRunner()
    outcome = runner.run("echo", [sys.executable, "-c", "print('hello')"], stdout_path=out)

    assert outcome.success
    assert outcome.returncode == 0
    assert out.read_text() == "hello\n"
    assert runner.history == [outcome]


def test_failure_keeps_stderr_tail():
    runner = CommandRunner(tail_lines=2)
    script = "import sys; sys.stderr.write('a\\nb\\nc\\n'); sys.exit(3)"
    outcome = runner.run("boom", [sys.executable, "-c", script])

    assert not outcome.success
    assert outcome.returncode == 3
    assert outcome.stderr_tail == "b\nc"
    assert outcome.to_dict()['success'] is False


def test_check_raises_with_outcome():
    runner = CommandRunner()
    with pytest.raises(ExternalToolFailure) as excinfo:
        runner.run("boom", [sys.executable, "-c", "import sys; sys.exit(5)"], check=True)
    assert excinfo.value.outcome.returncode == 5
    assert "boom failed with exit code 5" in str(excinfo.value)


def test_missing_executable_is_reported_not_raised():
    outcome = CommandRunner().run("missing", ["definitely-not-a-real-tool-xyz"])
    assert outcome.returncode == COMMAND_NOT_FOUND
    assert not outcome.success


def test_runs_in_requested_directory(tmp_path):
    out = tmp_path / "cwd.txt"
    CommandRunner().run("pwd", [sys.executable, "-c", "import os; print(os.getcwd())"],
                        cwd=tmp_path, stdout_path=out)
    assert out.read_text().strip() == str(tmp_path.resolve())


def test_undecodable_stderr_is_replaced_not_raised():
    runner = CommandRunner()
    script = "import sys; sys.stderr.buffer.write(b'\\xff\\xfe bad bytes\\n'); sys.exit(1)"
    outcome = runner.run("binary-noise", [sys.executable, "-c", script])

    assert not outcome.success
    assert outcome.returncode == 1
    assert "bad bytes" in outcome.stderr_tail
    assert "�" in outcome.stderr_tail
    assert runner.history == [outcome]


def test_unrunnable_command_is_reported(tmp_path):
    not_executable = tmp_path / "tool.sh"
    not_executable.write_text("echo hi\n")
    outcome = CommandRunner().run("noexec", [str(not_executable)])
    assert outcome.returncode == COMMAND_NOT_FOUND
