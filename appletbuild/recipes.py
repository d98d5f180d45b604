"""cosmic-applets-niri 的配方表

外部命令（cargo）以 Command 步骤声明，文件安装与 vendor 打包以 Action 步骤
在进程内完成。applet 标识目前固定为单个 workspaces applet。
"""

from __future__ import annotations

from pathlib import Path

from appletbuild.core.executor import RunContext
from appletbuild.core.install import DATA_MODE, EXEC_MODE, install_file, link, remove
from appletbuild.core.recipe import (
    Action,
    Bindings,
    Command,
    DependencyCall,
    Invoke,
    Lit,
    Param,
    Recipe,
    RecipeGraph,
    Ref,
)
from appletbuild.core.vendor import Provenance, VendorAssembler, clean_vendor, extract_vendor

APPLET_ID = "com.niri.workspaces"
LINK_NAME = "niri-applet-workspaces"

RUN_ENV = (("RUST_LOG", "cosmic_tasks=info"), ("RUST_BACKTRACE", "full"))

ARGS = Ref("args")
REST = (Param("args", variadic=True),)
ID = (Param("id"),)


def _cargo(*argv: Lit | Ref, env: tuple[tuple[str, str], ...] = ()) -> Command:
    return Command(argv=(Lit("cargo"), *argv), env=env)


def _lits(*values: str) -> tuple[Lit, ...]:
    return tuple(Lit(v) for v in values)


# =========================================================================
# 安装步骤
# =========================================================================

def _install_bin(ctx: RunContext, b: Bindings) -> None:
    install_file(ctx.resolve(ctx.paths.bin_src), ctx.resolve(ctx.paths.bin_dst), EXEC_MODE)


def _link_bin(ctx: RunContext, b: Bindings) -> None:
    link(ctx.paths.bin_dst, ctx.resolve(ctx.paths.link_path(str(b["id"]))))


def _install_desktop(ctx: RunContext, b: Bindings) -> None:
    app_id = str(b["id"])
    install_file(ctx.resolve(f"res/{app_id}.desktop"), ctx.resolve(ctx.paths.desktop_file(app_id)))


def _install_icon(ctx: RunContext, b: Bindings) -> None:
    app_id = str(b["id"])
    install_file(
        ctx.resolve(f"res/{app_id}-symbolic.svg"), ctx.resolve(ctx.paths.icon_file(app_id)),
    )


def _install_metainfo(ctx: RunContext, b: Bindings) -> None:
    install_file(ctx.resolve(ctx.paths.metainfo_src), ctx.resolve(ctx.paths.metainfo_dst), DATA_MODE)


def _uninstall(ctx: RunContext, b: Bindings) -> None:
    p = ctx.paths
    remove(ctx.resolve(p.icon_file(APPLET_ID)))
    remove(ctx.resolve(p.bin_dst), recursive=True)
    remove(ctx.resolve(p.link_path(LINK_NAME)))
    remove(ctx.resolve(p.desktop_dst), recursive=True)
    remove(ctx.resolve(p.metainfo_dst), recursive=True)


def _uninstall_summary(ctx: RunContext, b: Bindings) -> str:
    p = ctx.paths
    return "; ".join([
        f"rm {p.icon_file(APPLET_ID)}",
        f"rm -r {p.bin_dst}",
        f"rm {p.link_path(LINK_NAME)}",
        f"rm -r {p.desktop_dst}",
        f"rm -r {p.metainfo_dst}",
    ])


# =========================================================================
# vendor 步骤
# =========================================================================

def _vendor(ctx: RunContext, b: Bindings) -> None:
    VendorAssembler(
        work_dir=Path(ctx.work_dir),
        runner=ctx.runner,
        provenance=Provenance.from_config(ctx.config),
        environ=ctx.environ,
    ).run()


def _vendor_extract(ctx: RunContext, b: Bindings) -> None:
    extract_vendor(Path(ctx.work_dir))


def _clean_vendor(ctx: RunContext, b: Bindings) -> None:
    clean_vendor(Path(ctx.work_dir))


# =========================================================================
# 配方表
# =========================================================================

RECIPES = (
    Recipe(
        "default", dependencies=(DependencyCall("build-release"),),
        doc="Default recipe which runs `build-release`",
    ),
    Recipe("clean", body=(_cargo(Lit("clean")),), doc="Runs `cargo clean`"),
    Recipe(
        "clean-vendor",
        body=(Action("rm -rf .cargo vendor vendor.tar", _clean_vendor),),
        doc="Removes vendored dependencies",
    ),
    Recipe(
        "clean-dist",
        dependencies=(DependencyCall("clean"), DependencyCall("clean-vendor")),
        doc="`cargo clean` and removes vendored dependencies",
    ),
    Recipe(
        "build-debug", params=REST, body=(_cargo(Lit("build"), ARGS),),
        doc="Compiles with debug profile",
    ),
    Recipe(
        "build-release", params=REST,
        dependencies=(DependencyCall("build-debug", (Lit("--release"), ARGS)),),
        doc="Compiles with release profile",
    ),
    Recipe(
        "build-vendored", params=REST,
        dependencies=(
            DependencyCall("vendor-extract"),
            DependencyCall("build-release", (*_lits("--frozen", "--offline"), ARGS)),
        ),
        doc="Compiles release profile with vendored dependencies",
    ),
    Recipe(
        "check", params=REST,
        body=(_cargo(Lit("clippy"), Lit("--all-features"), ARGS, *_lits("--", "-W", "clippy::pedantic")),),
        doc="Runs a clippy check",
    ),
    Recipe(
        "check-json",
        dependencies=(DependencyCall("check", (Lit("--message-format=json"),)),),
        doc="Runs a clippy check with JSON message format",
    ),
    Recipe(
        "dev", params=REST,
        body=(_cargo(Lit("fmt")), Invoke("run", (ARGS,))),
        doc="Formats the sources, then runs the applet",
    ),
    Recipe(
        "run", params=REST,
        body=(_cargo(Lit("run"), Lit("--release"), ARGS, env=RUN_ENV),),
        doc="Run with debug logs",
    ),
    Recipe(
        "_install_icon", params=ID,
        body=(Action(
            "install icon", _install_icon, params=("id",),
            summary=lambda ctx, b: (
                f"install -Dm0644 res/{b['id']}-symbolic.svg {ctx.paths.icon_file(str(b['id']))}"
            ),
        ),),
    ),
    Recipe(
        "_install_desktop", params=ID,
        body=(Action(
            "install desktop entry", _install_desktop, params=("id",),
            summary=lambda ctx, b: (
                f"install -Dm0644 res/{b['id']}.desktop {ctx.paths.desktop_file(str(b['id']))}"
            ),
        ),),
    ),
    Recipe(
        "_install_bin",
        body=(Action(
            "install binary", _install_bin,
            summary=lambda ctx, b: f"install -Dm0755 {ctx.paths.bin_src} {ctx.paths.bin_dst}",
        ),),
    ),
    Recipe(
        "_link_bin", params=ID,
        body=(Action(
            "link binary", _link_bin, params=("id",),
            summary=lambda ctx, b: f"ln -sf {ctx.paths.bin_dst} {ctx.paths.link_path(str(b['id']))}",
        ),),
    ),
    Recipe(
        "install",
        dependencies=(
            DependencyCall("_install_bin"),
            DependencyCall("_link_bin", _lits(LINK_NAME)),
            DependencyCall("_install_desktop", _lits(APPLET_ID)),
            DependencyCall("_install_icon", _lits(APPLET_ID)),
        ),
        body=(Action(
            "install metainfo", _install_metainfo,
            summary=lambda ctx, b: (
                f"install -Dm0644 {ctx.paths.metainfo_src} {ctx.paths.metainfo_dst}"
            ),
        ),),
        doc="Installs files",
    ),
    Recipe(
        "uninstall",
        body=(Action("uninstall", _uninstall, summary=_uninstall_summary),),
        doc="Uninstalls installed files",
    ),
    Recipe(
        "vendor",
        body=(Action("vendor dependencies into vendor.tar", _vendor),),
        doc="Vendor dependencies locally",
    ),
    Recipe(
        "vendor-extract",
        body=(Action("rm -rf vendor; tar pxf vendor.tar", _vendor_extract),),
        doc="Extracts vendored dependencies",
    ),
)


def build_graph() -> RecipeGraph:
    """构建并校验配方图"""
    return RecipeGraph(RECIPES, default="default")
