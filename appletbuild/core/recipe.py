"""配方图模型

配方（Recipe）= 参数列表 + 依赖调用列表 + 执行体步骤。
依赖调用的实参是类型化的表达式（字面量 Lit / 形参引用 Ref），
在执行前解析为具体的 Invocation，不做任何文本替换，因此不存在引号转义问题。

配方图在构造时完成全部静态校验（引用缺失、参数个数、循环依赖），
定义错误永远不会拖到执行阶段才暴露。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Iterable, Iterator, Mapping, Protocol, Sequence, Union

from appletbuild.core.exceptions import DefinitionError, ValidationError
from appletbuild.utils.shell import format_cmd, run_cmd

if TYPE_CHECKING:
    from appletbuild.core.executor import RunContext

logger = logging.getLogger(__name__)

# 形参名 -> 实参；变长形参绑定为元组
Bindings = Mapping[str, Union[str, tuple[str, ...]]]


# =========================================================================
# 参数与实参表达式
# =========================================================================

@dataclass(frozen=True)
class Param:
    """配方形参，variadic=True 表示吸收剩余全部实参（只能放在最后）"""

    name: str
    variadic: bool = False
    default: str | None = None

    @property
    def required(self) -> bool:
        return not self.variadic and self.default is None


@dataclass(frozen=True)
class Lit:
    """字面量实参"""

    value: str


@dataclass(frozen=True)
class Ref:
    """引用父配方的形参；引用变长形参时原样展开为多个实参"""

    name: str


Arg = Union[Lit, Ref]


def render(args: Sequence[Arg], bindings: Bindings) -> tuple[str, ...]:
    """把实参表达式求值为字符串列表"""
    out: list[str] = []
    for a in args:
        if isinstance(a, Lit):
            out.append(a.value)
            continue
        value = bindings[a.name]
        if isinstance(value, tuple):
            out.extend(value)
        else:
            out.append(value)
    return tuple(out)


def _refs(args: Iterable[Arg]) -> list[str]:
    return [a.name for a in args if isinstance(a, Ref)]


@dataclass(frozen=True)
class Invocation:
    """一次具体的配方调用：配方名 + 已求值的实参"""

    recipe: str
    args: tuple[str, ...] = ()

    def __str__(self) -> str:
        return format_cmd([self.recipe, *self.args])


@dataclass(frozen=True)
class DependencyCall:
    """依赖声明：在本配方执行体之前调用的配方及其实参表达式"""

    recipe: str
    args: tuple[Arg, ...] = ()


# =========================================================================
# 执行体步骤
# =========================================================================

class Step(Protocol):
    """执行体步骤协议"""

    def describe(self, ctx: RunContext, bindings: Bindings) -> str:
        """返回用于日志 / dry-run 展示的一行描述"""
        ...

    def run(self, ctx: RunContext, bindings: Bindings) -> None:
        """执行步骤，失败抛 AppletBuildError 子类"""
        ...

    def references(self) -> list[str]:
        """步骤引用的形参名（用于定义期校验）"""
        ...


@dataclass(frozen=True)
class Command:
    """外部命令步骤"""

    argv: tuple[Arg, ...]
    env: tuple[tuple[str, str], ...] = ()

    def describe(self, ctx: RunContext, bindings: Bindings) -> str:
        prefix = " ".join(f"{k}={v}" for k, v in self.env)
        cmd = format_cmd(render(self.argv, bindings))
        return f"{prefix} {cmd}" if prefix else cmd

    def run(self, ctx: RunContext, bindings: Bindings) -> None:
        if ctx.dry_run:
            logger.info("[dry-run] %s", self.describe(ctx, bindings))
            return
        argv = render(self.argv, bindings)
        run_cmd(
            argv, cwd=ctx.work_dir, env={**ctx.environ, **dict(self.env)},
            label=argv[0], executor=ctx.runner,
        )

    def references(self) -> list[str]:
        return _refs(self.argv)


@dataclass(frozen=True)
class Action:
    """进程内 Python 步骤（文件安装、vendor 打包等）"""

    label: str
    fn: Callable[[RunContext, Bindings], None] = field(compare=False)
    summary: Callable[[RunContext, Bindings], str] | None = field(default=None, compare=False)
    params: tuple[str, ...] = ()

    def describe(self, ctx: RunContext, bindings: Bindings) -> str:
        if self.summary is not None:
            return self.summary(ctx, bindings)
        return self.label

    def run(self, ctx: RunContext, bindings: Bindings) -> None:
        if ctx.dry_run:
            logger.info("[dry-run] %s", self.describe(ctx, bindings))
            return
        logger.info("  %s", self.describe(ctx, bindings))
        self.fn(ctx, bindings)

    def references(self) -> list[str]:
        return list(self.params)


@dataclass(frozen=True)
class Invoke:
    """在执行体中重新发起一次顶层调用（相当于 `just <recipe> ...`）"""

    recipe: str
    args: tuple[Arg, ...] = ()

    def describe(self, ctx: RunContext, bindings: Bindings) -> str:
        return f"invoke {Invocation(self.recipe, render(self.args, bindings))}"

    def run(self, ctx: RunContext, bindings: Bindings) -> None:
        # dry-run 下同样展开，便于看到嵌套调用的完整命令
        ctx.invoke(Invocation(self.recipe, render(self.args, bindings)))

    def references(self) -> list[str]:
        return _refs(self.args)


# =========================================================================
# 配方
# =========================================================================

@dataclass(frozen=True)
class Recipe:
    """单个配方定义"""

    name: str
    params: tuple[Param, ...] = ()
    dependencies: tuple[DependencyCall, ...] = ()
    body: tuple[Step, ...] = ()
    doc: str = ""

    @property
    def private(self) -> bool:
        """下划线开头的配方不出现在列表中"""
        return self.name.startswith("_")

    @property
    def variadic(self) -> bool:
        return bool(self.params) and self.params[-1].variadic

    def arity(self) -> tuple[int, int | None]:
        """(最少实参数, 最多实参数)，None 表示不限"""
        low = sum(1 for p in self.params if p.required)
        high = None if self.variadic else len(self.params)
        return low, high

    def signature(self) -> str:
        parts = [self.name]
        for p in self.params:
            if p.variadic:
                parts.append(f"*{p.name}")
            elif p.default is not None:
                parts.append(f"{p.name}={p.default!r}")
            else:
                parts.append(p.name)
        return " ".join(parts)

    def bind(self, args: Sequence[str]) -> dict[str, str | tuple[str, ...]]:
        """按位置绑定实参，末尾变长形参吸收剩余全部实参"""
        low, high = self.arity()
        if len(args) < low or (high is not None and len(args) > high):
            expected = f"{low}" if low == high else f"{low}..{'' if high is None else high}"
            raise ValidationError(
                f"配方 {self.name} 需要 {expected} 个参数，实际 {len(args)} 个",
                details=list(args),
            )
        bound: dict[str, str | tuple[str, ...]] = {}
        for i, p in enumerate(self.params):
            if p.variadic:
                bound[p.name] = tuple(args[i:])
            elif i < len(args):
                bound[p.name] = args[i]
            else:
                bound[p.name] = p.default or ""
        return bound


# =========================================================================
# 配方图
# =========================================================================

def _supplied(args: Sequence[Arg], caller: Recipe) -> tuple[int, int | None]:
    """调用方提供的实参个数范围（引用变长形参时上限不定）"""
    variadic = {p.name for p in caller.params if p.variadic}
    fixed = sum(1 for a in args if not (isinstance(a, Ref) and a.name in variadic))
    spliced = any(isinstance(a, Ref) and a.name in variadic for a in args)
    return fixed, None if spliced else fixed


class RecipeGraph:
    """配方图：名称到配方的映射，构造时完成静态校验"""

    def __init__(self, recipes: Iterable[Recipe], default: str = "default") -> None:
        self._recipes: dict[str, Recipe] = {}
        for r in recipes:
            if r.name in self._recipes:
                raise DefinitionError(f"配方重复定义: {r.name}")
            self._recipes[r.name] = r
        self.default = default
        self._validate()

    def __contains__(self, name: object) -> bool:
        return name in self._recipes

    def __iter__(self) -> Iterator[Recipe]:
        return iter(self._recipes.values())

    def __len__(self) -> int:
        return len(self._recipes)

    def get(self, name: str) -> Recipe:
        recipe = self._recipes.get(name)
        if recipe is None:
            raise DefinitionError(
                f"配方不存在: {name}。可用: {', '.join(self.public_names())}"
            )
        return recipe

    def public_names(self) -> list[str]:
        return [r.name for r in self if not r.private]

    def edges(self, name: str) -> list[str]:
        """配方直接调用的其他配方（依赖 + 执行体内的嵌套调用）"""
        recipe = self._recipes[name]
        out = [d.recipe for d in recipe.dependencies]
        out.extend(s.recipe for s in recipe.body if isinstance(s, Invoke))
        return out

    def topological_order(self) -> list[str]:
        """Kahn 拓扑排序，被依赖者在前；存在环时抛 DefinitionError"""
        indeg = {n: 0 for n in self._recipes}
        users: dict[str, list[str]] = {n: [] for n in self._recipes}
        for n in self._recipes:
            for d in set(self.edges(n)):
                indeg[n] += 1
                users[d].append(n)
        queue = [n for n, deg in indeg.items() if deg == 0]
        ordered: list[str] = []
        while queue:
            current = queue.pop(0)
            ordered.append(current)
            for user in users[current]:
                indeg[user] -= 1
                if indeg[user] == 0:
                    queue.append(user)
        if len(ordered) != len(self._recipes):
            stuck = sorted(n for n in self._recipes if n not in ordered)
            raise DefinitionError(f"检测到循环依赖: {', '.join(stuck)}")
        return ordered

    def _validate(self) -> None:
        if self._recipes and self.default not in self._recipes:
            raise DefinitionError(f"默认配方不存在: {self.default}")
        for recipe in self:
            self._check_params(recipe)
            calls: list[tuple[str, tuple[Arg, ...]]] = [
                (d.recipe, d.args) for d in recipe.dependencies
            ]
            calls.extend((s.recipe, s.args) for s in recipe.body if isinstance(s, Invoke))
            for target, args in calls:
                self._check_call(recipe, target, args)
            for step in recipe.body:
                self._check_refs(recipe, step.references())
        self.topological_order()

    @staticmethod
    def _check_params(recipe: Recipe) -> None:
        names = [p.name for p in recipe.params]
        if len(set(names)) != len(names):
            raise DefinitionError(f"配方 {recipe.name} 形参重名")
        for p in recipe.params[:-1]:
            if p.variadic:
                raise DefinitionError(f"配方 {recipe.name} 的变长形参 {p.name} 必须位于最后")

    @staticmethod
    def _check_refs(recipe: Recipe, names: Iterable[str]) -> None:
        declared = {p.name for p in recipe.params}
        for name in names:
            if name not in declared:
                raise DefinitionError(f"配方 {recipe.name} 引用了未声明的形参: {name}")

    def _check_call(self, caller: Recipe, target: str, args: tuple[Arg, ...]) -> None:
        if target not in self._recipes:
            raise DefinitionError(f"配方 {caller.name} 依赖不存在的配方: {target}")
        self._check_refs(caller, _refs(args))
        low, high = self._recipes[target].arity()
        given_low, given_high = _supplied(args, caller)
        if (given_high is not None and given_high < low) or (
            high is not None and given_low > high
        ):
            raise DefinitionError(
                f"配方 {caller.name} 调用 {target} 的参数个数不匹配"
            )
