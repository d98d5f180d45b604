"""依赖 vendor 打包

VendorAssembler 是一个三态状态机:
    COLLECT  -> 建立 .cargo 目录，运行 `cargo vendor` 生成基础配置
    STAMP    -> 按需追加溯源字段（提交日期 / 提交哈希），缺失时静默跳过
    ARCHIVE  -> 把 .cargo 与 vendor 打成 vendor.tar（保留权限），再删除工作副本

extract_vendor() 是其逆操作：删除旧 vendor 目录后原地解包。
"""

from __future__ import annotations

import enum
import logging
import shutil
import tarfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Mapping

from appletbuild.core.config import BuildConfig
from appletbuild.core.exceptions import ConfigError, FilesystemError
from appletbuild.utils.shell import CommandExecutor, run_cmd
from appletbuild.utils.yaml_io import atomic_write

logger = logging.getLogger(__name__)

CONFIG_DIR = ".cargo"
VENDOR_DIR = "vendor"
ARCHIVE = "vendor.tar"
MANIFEST = "Cargo.toml"


@dataclass(frozen=True)
class Provenance:
    """可选的构建溯源信息"""

    commit_date: str | None = None
    commit_sha: str | None = None

    @classmethod
    def from_config(cls, config: BuildConfig) -> Provenance:
        """SOURCE_DATE_EPOCH 转换为 UTC 日历日期；空值视为未提供"""
        commit_date = None
        if config.source_date_epoch:
            try:
                ts = int(config.source_date_epoch)
                commit_date = datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d")
            except (ValueError, OverflowError, OSError) as e:
                raise ConfigError(
                    f"SOURCE_DATE_EPOCH 不是合法的时间戳: {config.source_date_epoch}"
                ) from e
        return cls(commit_date=commit_date, commit_sha=config.source_git_hash or None)

    def lines(self) -> list[str]:
        out = []
        if self.commit_date:
            out.append(f'VERGEN_GIT_COMMIT_DATE = "{self.commit_date}"')
        if self.commit_sha:
            out.append(f'VERGEN_GIT_SHA = "{self.commit_sha}"')
        return out


class VendorState(enum.Enum):
    COLLECT = "collect"
    STAMP = "stamp"
    ARCHIVE = "archive"
    DONE = "done"


@dataclass
class VendorAssembler:
    """vendor 打包状态机"""

    work_dir: Path
    runner: CommandExecutor
    provenance: Provenance = field(default_factory=Provenance)
    environ: Mapping[str, str] | None = None
    state: VendorState = VendorState.COLLECT

    @property
    def config_file(self) -> Path:
        return self.work_dir / CONFIG_DIR / "config.toml"

    @property
    def archive_path(self) -> Path:
        return self.work_dir / ARCHIVE

    def run(self) -> Path:
        """依次执行剩余状态，返回归档文件路径"""
        transitions = {
            VendorState.COLLECT: self.collect,
            VendorState.STAMP: self.stamp,
            VendorState.ARCHIVE: self.archive,
        }
        while self.state is not VendorState.DONE:
            transitions[self.state]()
        return self.archive_path

    def _expect(self, state: VendorState) -> None:
        if self.state is not state:
            raise RuntimeError(f"vendor 状态错误: 期望 {state.value}，当前 {self.state.value}")

    def collect(self) -> None:
        """运行 cargo vendor，保留除最后一行外的输出作为基础配置"""
        self._expect(VendorState.COLLECT)
        try:
            (self.work_dir / CONFIG_DIR).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(f"无法创建 {CONFIG_DIR}: {e}") from e
        r = run_cmd(
            ["cargo", "vendor", "--sync", MANIFEST],
            cwd=str(self.work_dir), env=None if self.environ is None else dict(self.environ),
            label="cargo vendor", capture=True, executor=self.runner,
        )
        lines = r.stdout.splitlines()[:-1]
        lines += [f'directory = "{VENDOR_DIR}"', "", "[env]"]
        try:
            atomic_write(self.config_file, "".join(f"{line}\n" for line in lines))
        except OSError as e:
            raise FilesystemError(f"写入 {self.config_file} 失败: {e}") from e
        self.state = VendorState.STAMP

    def stamp(self) -> None:
        """追加溯源字段；两个字段互相独立，缺失不报错"""
        self._expect(VendorState.STAMP)
        extra = self.provenance.lines()
        if extra:
            self._append(extra)
        else:
            logger.info("未提供 SOURCE_DATE_EPOCH / SOURCE_GIT_HASH，跳过溯源字段")
        self.state = VendorState.ARCHIVE

    def archive(self) -> None:
        """打包配置目录与 vendor 目录，随后删除工作副本"""
        self._expect(VendorState.ARCHIVE)
        try:
            with tarfile.open(self.archive_path, "w") as tf:
                for name in (CONFIG_DIR, VENDOR_DIR):
                    tf.add(self.work_dir / name, arcname=name)
            for name in (CONFIG_DIR, VENDOR_DIR):
                shutil.rmtree(self.work_dir / name)
        except (OSError, tarfile.TarError) as e:
            raise FilesystemError(f"vendor 打包失败: {e}") from e
        logger.info("vendor 归档完成: %s", self.archive_path)
        self.state = VendorState.DONE

    def _append(self, lines: list[str]) -> None:
        try:
            with open(self.config_file, "a", encoding="utf-8") as f:
                f.writelines(f"{line}\n" for line in lines)
        except OSError as e:
            raise FilesystemError(f"写入 {self.config_file} 失败: {e}") from e


def extract_vendor(work_dir: Path) -> None:
    """删除已有 vendor 目录后解包 vendor.tar

    使用 tarfile 的 "tar" 过滤器：保留普通权限位，但去掉 setuid/setgid/sticky
    以及组和其他用户的写权限，并拒绝解包到工作目录之外的条目。
    vendor.tar 可能随源码包分发，不按完全可信的归档处理。
    """
    vendor = work_dir / VENDOR_DIR
    try:
        if vendor.exists():
            shutil.rmtree(vendor)
        with tarfile.open(work_dir / ARCHIVE) as tf:
            tf.extractall(path=str(work_dir), filter="tar")  # noqa: S202
    except (OSError, tarfile.TarError) as e:
        raise FilesystemError(f"vendor 解包失败: {e}") from e
    logger.info("vendor 已解包: %s", vendor)


def clean_vendor(work_dir: Path) -> None:
    """删除 .cargo、vendor 与 vendor.tar，不存在的条目忽略"""
    try:
        for name in (CONFIG_DIR, VENDOR_DIR, ARCHIVE):
            target = work_dir / name
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target)
            else:
                target.unlink(missing_ok=True)
    except OSError as e:
        raise FilesystemError(f"清理 vendor 失败: {e}") from e
