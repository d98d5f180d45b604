"""安装 / 卸载文件操作

每个安装步骤都是独立、可重试的文件放置：补齐父目录 -> 复制 -> 设置权限，
等价于 `install -Dm<mode> src dst`。

卸载严格删除（等价于 `rm` / `rm -r`），目标不存在时抛 FilesystemError，
不做幂等处理。
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

from appletbuild.core.exceptions import FilesystemError

logger = logging.getLogger(__name__)

EXEC_MODE = 0o755
DATA_MODE = 0o644


def install_file(src: str | Path, dst: str | Path, mode: int = DATA_MODE) -> Path:
    """复制文件到目标位置并设置权限"""
    src, dst = Path(src), Path(dst)
    try:
        if not src.is_file():
            raise FileNotFoundError(f"源文件不存在: {src}")
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(src, dst)
        os.chmod(dst, mode)
    except OSError as e:
        raise FilesystemError(f"安装 {src} -> {dst} 失败: {e}") from e
    logger.debug("已安装 %s (%o)", dst, mode)
    return dst


def link(target: str | Path, link_path: str | Path) -> Path:
    """创建（或覆盖）符号链接，等价于 `ln -sf target link_path`"""
    link_path = Path(link_path)
    try:
        if link_path.is_symlink() or link_path.is_file():
            link_path.unlink()
        os.symlink(str(target), link_path)
    except OSError as e:
        raise FilesystemError(f"创建链接 {link_path} -> {target} 失败: {e}") from e
    return link_path


def remove(path: str | Path, *, recursive: bool = False) -> None:
    """删除文件或目录，不存在时报错（`rm` / `rm -r` 语义）"""
    path = Path(path)
    try:
        if path.is_dir() and not path.is_symlink():
            if not recursive:
                raise IsADirectoryError(f"是目录: {path}")
            shutil.rmtree(path)
        else:
            path.unlink()
    except OSError as e:
        raise FilesystemError(f"删除 {path} 失败: {e}") from e
    logger.debug("已删除 %s", path)
