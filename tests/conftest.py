"""测试共享 fixture：fake 命令执行器 + 日志清理"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Sequence

import pytest

from appletbuild.core.config import BuildConfig
from appletbuild.utils.logger import reset_logging
from appletbuild.utils.shell import CommandResult


class FakeExecutor:
    """记录调用的命令执行器，不启动任何子进程

    - returncodes: 以命令前缀（空格连接）为键指定退出码，如 {"cargo clean": 101}
    - hooks: 以命令前缀为键的回调，可在调用时模拟副作用并返回结果
    """

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.envs: list[dict[str, str] | None] = []
        self.returncodes: dict[str, int] = {}
        self.hooks: dict[str, Callable[[list[str], str], CommandResult]] = {}

    def _match(self, argv: list[str], table: dict) -> object | None:
        for i in range(len(argv), 0, -1):
            key = " ".join(argv[:i])
            if key in table:
                return table[key]
        return None

    def execute(
        self,
        cmd: Sequence[str],
        *,
        cwd: str = ".",
        env: dict[str, str] | None = None,
        capture: bool = False,
    ) -> CommandResult:
        argv = list(cmd)
        self.calls.append(argv)
        self.envs.append(env)
        hook = self._match(argv, self.hooks)
        if hook is not None:
            return hook(argv, cwd)  # type: ignore[operator]
        rc = self._match(argv, self.returncodes)
        return CommandResult(returncode=rc or 0)


@pytest.fixture()
def fake_runner() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture()
def project(tmp_path: Path) -> Path:
    """模拟 applet 工程目录"""
    proj = tmp_path / "proj"
    proj.mkdir()
    return proj


@pytest.fixture()
def config(project: Path, tmp_path: Path) -> BuildConfig:
    """指向临时工程目录、安装到临时暂存根目录的配置"""
    return BuildConfig(root_dir=str(tmp_path / "stage"), work_dir=str(project))


@pytest.fixture(autouse=True)
def _clean_logging():
    yield
    reset_logging()
