"""集中配置管理

目录布局、外部工具路径、并行度等全局设置的唯一入口。
支持从 YAML 文件加载 + 编程式覆盖（CLI 选项）。
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path

from superbuild.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

# 随包发布的默认依赖清单
PACKAGED_MANIFEST = str(Path(__file__).resolve().parent.parent / "data" / "dependencies.yml")


@dataclass
class Config:
    """superbuild 全局配置"""

    # 目录
    manifest: str = PACKAGED_MANIFEST
    project_dir: str = "."               # 宿主工程根目录，默认安装根目录与其相邻
    source_dir: str = "dependencies"     # <source_dir>/<name> 存放拉取的源码
    binary_dir: str = "dependencies-build"
    install_prefix: str = ""             # 为空时使用默认安装根目录
    settings_file: str = ""              # 为空时使用 <binary_dir>/superbuild-settings.yml

    # 构建
    build_type: str = "RelWithDebInfo"
    generator: str = ""
    build_jobs: int = 4                  # 自定义 make 步骤的 -j 级别

    # 执行
    max_workers: int = 1
    command_timeout: int | None = None

    # 外部工具
    cmake_program: str = "cmake"
    git_program: str = "git"
    make_program: str = "make"

    extra: dict = field(default_factory=dict)

    @classmethod
    def from_file(cls, path: str = "configs/default.yml") -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        data = load_yaml(path)
        if not data:
            return cls()
        known = {f.name for f in cls.__dataclass_fields__.values()}
        matched = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}
        cfg = cls(**matched)
        cfg.extra = extra
        return cfg

    @property
    def settings_path(self) -> Path:
        if self.settings_file:
            return Path(self.settings_file)
        return Path(self.binary_dir) / "superbuild-settings.yml"

    def to_dict(self) -> dict:
        return asdict(self)


# 全局单例，首次 import 时不加载文件；由 CLI 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str = "configs/default.yml") -> Config:
    """从文件初始化全局配置"""
    global _current  # noqa: PLW0603
    _current = Config.from_file(path)
    logger.info("配置已加载: %s", path)
    return _current


def reset_config() -> None:
    """重置全局配置（仅用于测试）"""
    global _current  # noqa: PLW0603
    _current = None
