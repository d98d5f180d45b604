"""配方执行器

职责:
- 把顶层调用展开为有序的 Invocation 列表（依赖在前，按声明顺序）
- 逐个同步执行配方体，任一步骤失败立即终止整个顶层调用
- 不做去重：同一配方被多条路径请求时，每次请求都会执行

所有实参在任何执行体开始前完成绑定校验。
"""

from __future__ import annotations

import logging
import os
import posixpath
from dataclasses import dataclass, field
from typing import Callable, Mapping, Sequence

from appletbuild.core.config import BuildConfig
from appletbuild.core.exceptions import AppletBuildError
from appletbuild.core.paths import DerivedPaths, resolve_paths
from appletbuild.core.recipe import Invocation, RecipeGraph, render
from appletbuild.utils.shell import CommandExecutor, get_executor

logger = logging.getLogger(__name__)


@dataclass
class RunContext:
    """配方步骤可见的执行上下文"""

    config: BuildConfig
    paths: DerivedPaths
    runner: CommandExecutor
    environ: dict[str, str] = field(default_factory=dict)
    dry_run: bool = False
    invoke: Callable[[Invocation], None] = field(default=lambda inv: None, repr=False)

    @property
    def work_dir(self) -> str:
        return self.config.work_dir

    def resolve(self, path: str) -> str:
        """相对路径以工程目录为基准"""
        if posixpath.isabs(path):
            return path
        return posixpath.join(self.work_dir, path)


class RecipeExecutor:
    """同步、失败即停的配方执行器"""

    def __init__(
        self,
        graph: RecipeGraph,
        config: BuildConfig,
        *,
        runner: CommandExecutor | None = None,
        environ: Mapping[str, str] | None = None,
        dry_run: bool = False,
    ) -> None:
        self.graph = graph
        self.config = config
        self.paths = resolve_paths(config)
        # 未显式传入时继承当前进程环境
        env = dict(os.environ if environ is None else environ)
        # 与 justfile 的 `export INSTALL_DIR` 一致，所有子进程可见
        env["INSTALL_DIR"] = self.paths.install_dir
        self.ctx = RunContext(
            config=config,
            paths=self.paths,
            runner=runner or get_executor(),
            environ=env,
            dry_run=dry_run,
            invoke=self.execute,
        )

    def plan(self, invocation: Invocation) -> list[Invocation]:
        """展开依赖，返回按执行顺序排列的调用列表"""
        out: list[Invocation] = []
        self._expand(invocation, out)
        return out

    def _expand(self, invocation: Invocation, out: list[Invocation]) -> None:
        recipe = self.graph.get(invocation.recipe)
        bindings = recipe.bind(invocation.args)
        for dep in recipe.dependencies:
            self._expand(Invocation(dep.recipe, render(dep.args, bindings)), out)
        out.append(invocation)

    def execute(self, invocation: Invocation) -> None:
        """执行一次调用（含全部依赖），失败抛 AppletBuildError"""
        for inv in self.plan(invocation):
            self._run_body(inv)

    def _run_body(self, invocation: Invocation) -> None:
        recipe = self.graph.get(invocation.recipe)
        bindings = recipe.bind(invocation.args)
        if not recipe.body:
            return
        logger.info("==> %s", invocation, extra={"recipe": recipe.name})
        for step in recipe.body:
            step.run(self.ctx, bindings)

    def run(self, recipe: str | None = None, args: Sequence[str] = ()) -> int:
        """执行顶层调用，返回退出状态（0 表示成功，否则为首个失败步骤的状态）"""
        invocation = Invocation(recipe or self.graph.default, tuple(args))
        try:
            self.execute(invocation)
        except AppletBuildError as e:
            logger.error("%s 失败: %s", invocation, e, extra={"recipe": invocation.recipe})
            return e.exit_status
        return 0
