"""shell.py run_cmd / LocalExecutor 单元测试"""

from __future__ import annotations

import os

import pytest

from appletbuild.core.exceptions import ExecutionError, FilesystemError
from appletbuild.utils.shell import (
    LocalExecutor,
    format_cmd,
    get_executor,
    run_cmd,
    set_executor,
)


class TestRunCmd:
    def test_success(self, tmp_path) -> None:
        r = run_cmd(["echo", "hello"], cwd=str(tmp_path), label="test", capture=True)
        assert r.returncode == 0
        assert "hello" in r.stdout

    def test_failure_raises_execution_error(self, tmp_path) -> None:
        with pytest.raises(ExecutionError, match="cmd失败"):
            run_cmd(["false"], cwd=str(tmp_path))

    def test_custom_label_in_error(self, tmp_path) -> None:
        with pytest.raises(ExecutionError, match="mybuild失败"):
            run_cmd(["false"], cwd=str(tmp_path), label="mybuild")

    def test_exact_returncode_kept(self, tmp_path) -> None:
        with pytest.raises(ExecutionError) as exc:
            run_cmd(["sh", "-c", "exit 3"], cwd=str(tmp_path))
        assert exc.value.returncode == 3
        assert exc.value.exit_status == 3

    def test_env_passed(self, tmp_path) -> None:
        env = {**os.environ, "MY_TEST_VAR": "42"}
        r = run_cmd(["env"], cwd=str(tmp_path), env=env, label="env_test", capture=True)
        assert "MY_TEST_VAR=42" in r.stdout

    def test_injected_executor(self, fake_runner) -> None:
        fake_runner.returncodes["cargo clean"] = 101
        with pytest.raises(ExecutionError, match="rc=101"):
            run_cmd(["cargo", "clean"], executor=fake_runner)
        assert fake_runner.calls == [["cargo", "clean"]]


class TestLocalExecutor:
    def test_missing_command_is_127(self, tmp_path) -> None:
        r = LocalExecutor().execute(["definitely-not-a-command-xyz"], cwd=str(tmp_path))
        assert r.returncode == 127
        assert not r.success

    def test_non_executable_is_126(self, tmp_path) -> None:
        script = tmp_path / "tool"
        script.write_text("#!/bin/sh\nexit 0\n", encoding="utf-8")
        script.chmod(0o644)
        r = LocalExecutor().execute([str(script)], cwd=str(tmp_path))
        assert r.returncode == 126
        assert "Permission denied" in r.stderr

    def test_missing_cwd_is_filesystem_error(self, tmp_path) -> None:
        missing = tmp_path / "nope"
        with pytest.raises(FilesystemError, match="无法进入工作目录"):
            LocalExecutor().execute(["true"], cwd=str(missing))

    def test_arguments_not_shell_parsed(self, tmp_path) -> None:
        r = LocalExecutor().execute(["echo", "a b; c"], cwd=str(tmp_path), capture=True)
        assert r.stdout.strip() == "a b; c"


def test_format_cmd_quotes_arguments() -> None:
    assert format_cmd(["cargo", "build", "a b"]) == "cargo build 'a b'"


def test_set_executor_replaces_default(fake_runner) -> None:
    previous = get_executor()
    set_executor(fake_runner)
    try:
        run_cmd(["cargo", "build"])
    finally:
        set_executor(previous)
    assert fake_runner.calls == [["cargo", "build"]]
    assert get_executor() is previous
