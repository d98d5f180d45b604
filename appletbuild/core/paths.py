"""安装路径解析

所有安装目标路径都由 BuildConfig 的 root_dir / prefix 纯字符串拼接得出，
不访问文件系统、不缓存。

两族路径刻意分开计算:
- base_dir 族（bin、INSTALL_DIR）: absolute(clean(root_dir/prefix))，支持重定位安装
- share 族（desktop、metainfo、icons）: clean(root_dir/prefix)，不做绝对化
"""

from __future__ import annotations

import os
import posixpath
from dataclasses import dataclass

from appletbuild.core.config import BuildConfig

METAINFO = "com.niri.applets.metainfo.xml"


def join(*parts: str) -> str:
    """路径拼接：总是用 "/" 连接，("" / "/usr") 得到 "//usr"，交给 clean 规整"""
    return "/".join(parts)


def clean(path: str) -> str:
    """词法规整：去掉 "."、".." 和重复的 "/"，不解析符号链接"""
    cleaned = posixpath.normpath(path) if path else "."
    # POSIX 保留开头的 "//"，这里统一折叠成 "/"
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


def absolute(path: str, base: str) -> str:
    """相对路径以 base（工程目录）为基准绝对化"""
    if posixpath.isabs(path):
        return clean(path)
    if not posixpath.isabs(base):
        base = os.path.abspath(base)
    return clean(join(base, path))


@dataclass(frozen=True)
class DerivedPaths:
    """由根配置推导出的全部路径"""

    base_dir: str
    share_root: str
    install_dir: str
    bin_src: str
    bin_dst: str
    desktop_dst: str
    metainfo_src: str
    metainfo_dst: str
    icons_dst: str

    def link_path(self, link_name: str) -> str:
        """二进制别名链接的位置（链接目标恒为 bin_dst）"""
        return join(self.base_dir, "bin", link_name)

    def desktop_file(self, app_id: str) -> str:
        return join(self.desktop_dst, f"{app_id}.desktop")

    def icon_file(self, app_id: str) -> str:
        return join(self.icons_dst, f"{app_id}-symbolic.svg")

    def as_variables(self) -> dict[str, str]:
        """以 justfile 变量名导出，供 --evaluate 展示"""
        return {
            "base-dir": self.base_dir,
            "INSTALL_DIR": self.install_dir,
            "bin-src": self.bin_src,
            "bin-dst": self.bin_dst,
            "desktop-dst": self.desktop_dst,
            "metainfo-src": self.metainfo_src,
            "metainfo-dst": self.metainfo_dst,
            "icons-dst": self.icons_dst,
        }


def resolve_paths(config: BuildConfig) -> DerivedPaths:
    """根据根配置计算全部安装路径"""
    share_root = clean(join(config.root_dir, config.prefix))
    base_dir = absolute(share_root, config.work_dir)
    return DerivedPaths(
        base_dir=base_dir,
        share_root=share_root,
        install_dir=join(base_dir, "share"),
        bin_src=join("target", "release", config.name),
        bin_dst=join(base_dir, "bin", config.name),
        desktop_dst=join(share_root, "share", "applications"),
        metainfo_src=join("res", METAINFO),
        metainfo_dst=join(share_root, "share", "metainfo", METAINFO),
        icons_dst=join(share_root, "share", "icons", "hicolor", "scalable", "apps"),
    )
