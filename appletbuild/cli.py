"""appletbuild 命令行接口

用法与 just 保持一致:
    appletbuild [OPTIONS] [NAME=VALUE...] [RECIPE] [ARGS...]

选项必须写在配方名之前，配方名之后的所有内容原样传给配方。
环境变量只在这里读取一次，之后以 BuildConfig 显式传递。
"""

from __future__ import annotations

import os
from typing import Mapping

import click

from appletbuild import __version__
from appletbuild.core.config import DEFAULT_CONFIG_FILE, BuildConfig
from appletbuild.core.exceptions import AppletBuildError, ConfigError
from appletbuild.core.executor import RecipeExecutor
from appletbuild.core.recipe import Lit, Recipe, RecipeGraph
from appletbuild.recipes import build_graph
from appletbuild.utils.logger import setup_logging

# 命令行赋值 NAME=VALUE 可覆盖的变量（justfile 变量名 -> 配置字段）
ASSIGNABLE = {"rootdir": "root_dir", "prefix": "prefix", "name": "name"}


def _split_assignments(arguments: tuple[str, ...]) -> tuple[dict[str, str], list[str]]:
    """拆出开头的 NAME=VALUE 赋值，其余为配方名和实参"""
    overrides: dict[str, str] = {}
    rest = list(arguments)
    while rest and "=" in rest[0] and not rest[0].startswith("-"):
        key, value = rest.pop(0).split("=", 1)
        field_name = ASSIGNABLE.get(key.strip())
        if field_name is None:
            raise ConfigError(f"未知变量: {key}。可覆盖: {', '.join(ASSIGNABLE)}")
        overrides[field_name] = value
    return overrides, rest


def _format_list(graph: RecipeGraph) -> list[str]:
    public = [r for r in graph if not r.private]
    width = max((len(r.signature()) for r in public), default=0)
    lines = ["Available recipes:"]
    for r in sorted(public, key=lambda r: r.name):
        sig = r.signature()
        lines.append(f"    {sig:<{width}} # {r.doc}" if r.doc else f"    {sig}")
    return lines


def _format_show(recipe: Recipe, executor: RecipeExecutor) -> list[str]:
    placeholders = {
        p.name: (f"{{{{{p.name}}}}}",) if p.variadic else f"{{{{{p.name}}}}}"
        for p in recipe.params
    }
    lines = [f"# {recipe.doc}"] if recipe.doc else []
    deps = []
    for d in recipe.dependencies:
        args = " ".join(repr(a.value) if isinstance(a, Lit) else a.name for a in d.args)
        deps.append(f"({d.recipe} {args})" if args else d.recipe)
    lines.append(f"{recipe.signature()}: {' '.join(deps)}".rstrip())
    for step in recipe.body:
        lines.append(f"    {step.describe(executor.ctx, placeholders)}")
    return lines


@click.command(context_settings={
    "ignore_unknown_options": True,
    "allow_interspersed_args": False,
    "help_option_names": ["-h", "--help"],
})
@click.version_option(version=__version__)
@click.option("--list", "-l", "list_recipes", is_flag=True, help="列出可用配方")
@click.option("--show", "-s", "show", default=None, metavar="RECIPE", help="显示配方定义")
@click.option("--evaluate", is_flag=True, help="打印推导出的路径变量")
@click.option("--dry-run", "-n", is_flag=True, help="只打印将要执行的步骤")
@click.option("--rootdir", default=None, help="安装根目录（打包暂存目录）")
@click.option("--prefix", default=None, help="安装前缀，默认 /usr")
@click.option("--config", "-c", "config_path", default=DEFAULT_CONFIG_FILE, help="配置文件路径")
@click.option(
    "--working-directory", "-d", default=".",
    type=click.Path(file_okay=False), help="工程目录",
)
@click.argument("arguments", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def main(
    ctx: click.Context, list_recipes: bool, show: str | None, evaluate: bool,
    dry_run: bool, rootdir: str | None, prefix: str | None, config_path: str,
    working_directory: str, arguments: tuple[str, ...],
) -> None:
    """cosmic-applets-niri 构建与打包"""
    environ: Mapping[str, str] = dict(os.environ)
    setup_logging(
        level=environ.get("APPLETBUILD_LOG_LEVEL", "INFO"),
        json_output=environ.get("APPLETBUILD_LOG_JSON", "") == "1",
    )
    work_dir = os.path.abspath(working_directory)

    try:
        overrides, rest = _split_assignments(arguments)
        config = BuildConfig.load(
            os.path.join(work_dir, config_path),
            environ,
            root_dir=rootdir, prefix=prefix, work_dir=work_dir,
        ).with_overrides(**overrides)
        graph = build_graph()
        executor = RecipeExecutor(graph, config, environ=environ, dry_run=dry_run)
        if show is not None:
            for line in _format_show(graph.get(show), executor):
                click.echo(line)
            return
    except AppletBuildError as e:
        click.echo(f"error: {e}", err=True)
        ctx.exit(e.exit_status)

    if list_recipes:
        for line in _format_list(graph):
            click.echo(line)
        return
    if evaluate:
        for key, value in executor.paths.as_variables().items():
            click.echo(f'{key} := "{value}"')
        return

    recipe, args = (rest[0], rest[1:]) if rest else (None, [])
    try:
        status = executor.run(recipe, args)
    except KeyboardInterrupt:
        click.echo("interrupted", err=True)
        status = 130
    ctx.exit(status)


if __name__ == "__main__":
    main()
