"""统一异常体系

所有业务异常继承 AppletBuildError。
CLI 层据此输出友好提示并映射退出码。
"""

from __future__ import annotations


class AppletBuildError(Exception):
    """框架基础异常"""

    code: str = "UNKNOWN"
    exit_status: int = 1

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(AppletBuildError):
    """配置文件或环境变量内容无效"""

    code = "CONFIG_ERROR"


class DefinitionError(AppletBuildError):
    """配方定义错误：引用不存在、循环依赖、参数个数不匹配"""

    code = "DEFINITION_ERROR"


class ValidationError(AppletBuildError):
    """调用参数校验失败"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.details = details or []


class ExecutionError(AppletBuildError):
    """外部命令以非零状态退出"""

    code = "EXECUTION_ERROR"

    def __init__(self, message: str, returncode: int = 1) -> None:
        super().__init__(message)
        self.returncode = returncode

    @property
    def exit_status(self) -> int:  # type: ignore[override]
        # 被信号终止的子进程 returncode 为 -N，按 shell 习惯映射为 128+N
        return 128 - self.returncode if self.returncode < 0 else self.returncode


class FilesystemError(AppletBuildError):
    """文件操作失败：源文件缺失、权限不足、卸载目标不存在"""

    code = "FILESYSTEM_ERROR"
