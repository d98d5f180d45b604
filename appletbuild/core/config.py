"""集中配置管理

环境变量只在入口处读取一次，之后以 BuildConfig 显式传递给各组件，
配方执行过程中不再访问 os.environ。

优先级: 默认值 < YAML 配置文件 < 环境变量 < 命令行覆盖
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Mapping

import yaml

from appletbuild.core.exceptions import ConfigError
from appletbuild.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "appletbuild.yml"

# 环境变量名 -> 配置字段
ENV_FIELDS = {
    "ROOTDIR": "root_dir",
    "PREFIX": "prefix",
    "SOURCE_DATE_EPOCH": "source_date_epoch",
    "SOURCE_GIT_HASH": "source_git_hash",
}

# 配置文件里允许的别名（与 justfile 变量名保持一致）
_FILE_ALIASES = {"rootdir": "root_dir"}


@dataclass(frozen=True)
class BuildConfig:
    """一次调用的根配置（构建后不可变）"""

    name: str = "cosmic-applets-niri"
    root_dir: str = ""
    prefix: str = "/usr"
    work_dir: str = "."

    # 溯源信息：为空表示未提供，vendor 时跳过对应字段
    source_date_epoch: str | None = None
    source_git_hash: str | None = None

    # 放不到字段里的配置项
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_file(cls, path: str = DEFAULT_CONFIG_FILE) -> BuildConfig:
        """从 YAML 文件加载配置，不存在则返回默认"""
        try:
            data = load_yaml(path)
        except (yaml.YAMLError, ValueError, OSError) as e:
            raise ConfigError(f"配置文件无法读取: {path}: {e}") from e
        if not data:
            return cls()
        known = {f for f in cls.__dataclass_fields__ if f != "extra"}
        matched: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for k, v in data.items():
            key = _FILE_ALIASES.get(k, k)
            if key in known:
                matched[key] = "" if v is None else str(v)
            else:
                extra[k] = v
        if extra:
            logger.warning(
                "配置文件 %s 含未知配置项（不参与构建）: %s", path, ", ".join(sorted(map(str, extra))),
            )
        logger.debug("配置已加载: %s", path)
        return cls(**matched, extra=extra)

    def with_env(self, environ: Mapping[str, str]) -> BuildConfig:
        """用环境变量覆盖；空字符串视为未设置"""
        updates = {
            attr: environ[var]
            for var, attr in ENV_FIELDS.items()
            if environ.get(var)
        }
        return replace(self, **updates) if updates else self

    def with_overrides(self, **overrides: str | None) -> BuildConfig:
        """命令行覆盖，值为 None 的项忽略"""
        known = set(self.__dataclass_fields__)
        unknown = [k for k in overrides if k not in known]
        if unknown:
            raise ConfigError(f"未知配置项: {', '.join(sorted(unknown))}")
        updates = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **updates) if updates else self

    @classmethod
    def load(
        cls,
        path: str = DEFAULT_CONFIG_FILE,
        environ: Mapping[str, str] | None = None,
        **overrides: str | None,
    ) -> BuildConfig:
        """按优先级组装配置：文件 -> 环境变量 -> 命令行"""
        cfg = cls.from_file(path)
        if environ is not None:
            cfg = cfg.with_env(environ)
        return cfg.with_overrides(**overrides)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
