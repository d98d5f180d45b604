"""安装路径解析测试"""

from __future__ import annotations

import posixpath

import pytest

from appletbuild.core.config import BuildConfig
from appletbuild.core.paths import METAINFO, absolute, clean, join, resolve_paths

NAME = "cosmic-applets-niri"


class TestPathHelpers:
    def test_join_always_inserts_separator(self) -> None:
        assert join("", "/usr") == "//usr"
        assert join("/stage", "/usr") == "/stage//usr"

    @pytest.mark.parametrize(("raw", "expected"), [
        ("//usr", "/usr"),
        ("/stage//usr/", "/stage/usr"),
        ("/usr/./local/../lib", "/usr/lib"),
        ("stage/../usr", "usr"),
        ("", "."),
    ])
    def test_clean(self, raw: str, expected: str) -> None:
        assert clean(raw) == expected

    def test_absolute_uses_base(self) -> None:
        assert absolute("stage/usr", "/proj") == "/proj/stage/usr"
        assert absolute("/usr", "/proj") == "/usr"


class TestResolvePaths:
    def test_defaults(self) -> None:
        p = resolve_paths(BuildConfig(work_dir="/proj"))
        assert p.base_dir == "/usr"
        assert p.install_dir == "/usr/share"
        assert p.bin_src == f"target/release/{NAME}"
        assert p.bin_dst == f"/usr/bin/{NAME}"
        assert p.desktop_dst == "/usr/share/applications"
        assert p.metainfo_src == f"res/{METAINFO}"
        assert p.metainfo_dst == f"/usr/share/metainfo/{METAINFO}"
        assert p.icons_dst == "/usr/share/icons/hicolor/scalable/apps"

    def test_staging_rootdir(self) -> None:
        p = resolve_paths(BuildConfig(root_dir="/tmp/stage", work_dir="/proj"))
        assert p.base_dir == "/tmp/stage/usr"
        assert p.bin_dst == f"/tmp/stage/usr/bin/{NAME}"
        assert p.desktop_dst == "/tmp/stage/usr/share/applications"

    def test_relative_rootdir_keeps_two_path_families(self) -> None:
        """bin 族绝对化，share 族保持 clean(rootdir/prefix) 原样"""
        p = resolve_paths(BuildConfig(root_dir="stage", work_dir="/proj"))
        assert p.base_dir == "/proj/stage/usr"
        assert p.bin_dst == f"/proj/stage/usr/bin/{NAME}"
        assert p.install_dir == "/proj/stage/usr/share"
        assert p.desktop_dst == "stage/usr/share/applications"
        assert p.icons_dst == "stage/usr/share/icons/hicolor/scalable/apps"
        assert p.metainfo_dst == f"stage/usr/share/metainfo/{METAINFO}"

    @pytest.mark.parametrize(("root_dir", "prefix"), [
        ("", "/usr"),
        ("", "usr"),
        ("/a/b/..", "/usr/./local/../"),
        ("..", "/usr"),
        ("./pkg/./", "../opt"),
    ])
    def test_base_dir_absolute_and_clean(self, root_dir: str, prefix: str) -> None:
        p = resolve_paths(BuildConfig(root_dir=root_dir, prefix=prefix, work_dir="/proj/sub"))
        assert posixpath.isabs(p.base_dir)
        segments = p.base_dir.split("/")
        assert "." not in segments
        assert ".." not in segments
        assert p.bin_dst == f"{p.base_dir}/bin/{NAME}"

    def test_link_points_at_bin_dst(self) -> None:
        p = resolve_paths(BuildConfig(root_dir="/stage", work_dir="/proj"))
        assert p.link_path("niri-applet-workspaces") == "/stage/usr/bin/niri-applet-workspaces"
        assert posixpath.dirname(p.link_path("x")) == posixpath.dirname(p.bin_dst)

    def test_resource_files(self) -> None:
        p = resolve_paths(BuildConfig(work_dir="/proj"))
        assert p.desktop_file("com.niri.workspaces") == (
            "/usr/share/applications/com.niri.workspaces.desktop"
        )
        assert p.icon_file("com.niri.workspaces") == (
            "/usr/share/icons/hicolor/scalable/apps/com.niri.workspaces-symbolic.svg"
        )

    def test_deterministic(self) -> None:
        cfg = BuildConfig(root_dir="/stage", prefix="/opt", work_dir="/proj")
        assert resolve_paths(cfg) == resolve_paths(cfg)

    def test_as_variables(self) -> None:
        v = resolve_paths(BuildConfig(work_dir="/proj")).as_variables()
        assert v["INSTALL_DIR"] == "/usr/share"
        assert v["bin-dst"] == f"/usr/bin/{NAME}"
