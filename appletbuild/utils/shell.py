"""Shell 命令执行工具：统一子进程调用

通过 CommandExecutor 协议抽象子进程执行，方便测试替换。
配方中的 cargo 等外部命令都经由此处启动，输出默认直接透传到终端。
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass
from typing import Protocol, Sequence

from appletbuild.core.exceptions import ExecutionError, FilesystemError

logger = logging.getLogger(__name__)


# =========================================================================
# 命令执行结果
# =========================================================================

@dataclass
class CommandResult:
    """命令执行结果（与 subprocess 解耦）"""

    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def success(self) -> bool:
        return self.returncode == 0


# =========================================================================
# 命令执行器协议
# =========================================================================

class CommandExecutor(Protocol):
    """命令执行器协议：抽象子进程调用

    测试时可注入 fake 实现，无需 patch subprocess。
    """

    def execute(
        self,
        cmd: Sequence[str],
        *,
        cwd: str = ".",
        env: dict[str, str] | None = None,
        capture: bool = False,
    ) -> CommandResult:
        """执行命令并返回结果；capture=False 时输出直接透传"""
        ...


# =========================================================================
# 默认实现: 本地执行器
# =========================================================================

class LocalExecutor:
    """本地子进程执行器（默认实现）"""

    def execute(
        self,
        cmd: Sequence[str],
        *,
        cwd: str = ".",
        env: dict[str, str] | None = None,
        capture: bool = False,
    ) -> CommandResult:
        try:
            r = subprocess.run(
                list(cmd), capture_output=capture, text=True,
                cwd=cwd, env=env, check=False,
            )
        except OSError as e:
            if e.filename is not None and str(e.filename) == str(cwd):
                raise FilesystemError(f"无法进入工作目录 {cwd}: {e.strerror}") from e
            if isinstance(e, FileNotFoundError):
                # 与 shell 行为保持一致：命令不存在视为 127
                logger.error("命令不存在: %s", cmd[0])
                return CommandResult(returncode=127, stderr=f"{cmd[0]}: command not found")
            # 不可执行（权限不足、格式错误）视为 126
            logger.error("命令无法执行: %s: %s", cmd[0], e.strerror)
            return CommandResult(returncode=126, stderr=f"{cmd[0]}: {e.strerror}")
        return CommandResult(
            returncode=r.returncode,
            stdout=r.stdout or "",
            stderr=r.stderr or "",
        )


# =========================================================================
# 全局默认执行器（可替换）
# =========================================================================

_default_executor: CommandExecutor = LocalExecutor()


def get_executor() -> CommandExecutor:
    """获取全局默认命令执行器"""
    return _default_executor


def set_executor(executor: CommandExecutor) -> None:
    """替换全局默认命令执行器（用于测试）"""
    global _default_executor  # noqa: PLW0603
    _default_executor = executor


# =========================================================================
# 便捷函数
# =========================================================================

def format_cmd(cmd: Sequence[str]) -> str:
    """把参数列表还原为可复制到终端的命令行"""
    return shlex.join(list(cmd))


def run_cmd(
    cmd: Sequence[str], *, cwd: str = ".",
    env: dict[str, str] | None = None,
    label: str = "cmd",
    capture: bool = False,
    executor: CommandExecutor | None = None,
) -> CommandResult:
    """执行命令，非零退出抛 ExecutionError（携带原始退出码）

    Args:
        cmd: 参数列表（不经过 shell 解析）
        cwd: 工作目录
        env: 环境变量（不传则继承当前进程）
        label: 日志标签
        capture: 是否捕获输出
        executor: 指定执行器，默认使用全局执行器
    """
    logger.info("  %s: %s", label, format_cmd(cmd))
    r = (executor or get_executor()).execute(cmd, cwd=cwd, env=env, capture=capture)
    if not r.success:
        msg = f"{label}失败 (rc={r.returncode})"
        if r.stderr:
            msg = f"{msg}: {r.stderr[:500]}"
        raise ExecutionError(msg, returncode=r.returncode)
    return r
