"""安装布局与启动期默认值

- InstallLayout: 每个依赖的源码 / 中间构建 / 最终安装三个目录，都以依赖名隔离
- 默认安装根目录: 宿主工程相邻目录 <project_dir>/../<project>_dependencies_install
- 默认构建类型: 仅对单配置生成器有意义，默认 RelWithDebInfo
- 默认根目录清理: 用户换了安装根目录后，旧默认目录只有为空时才删除
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from superbuild.core.dep.models import DependencySpec

logger = logging.getLogger(__name__)

BUILD_TYPES = ("Debug", "Release", "RelWithDebInfo", "MinSizeRel")
DEFAULT_BUILD_TYPE = "RelWithDebInfo"


@dataclass(frozen=True)
class InstallLayout:
    """一个依赖的目录布局（每次运行重新计算，不持久化）"""

    name: str
    source_dir: Path    # <source_root>/<name>
    binary_dir: Path    # <binary_root>/<name>
    install_dir: Path   # <install_prefix>/<install_name>

    @property
    def tmp_dir(self) -> Path:
        return self.binary_dir / "tmp"

    @property
    def stamp_dir(self) -> Path:
        return self.binary_dir / "stamp"

    @property
    def build_dir(self) -> Path:
        return self.binary_dir / "build"


def resolve_layout(
    spec: DependencySpec, source_root: Path, binary_root: Path, install_prefix: Path,
) -> InstallLayout:
    return InstallLayout(
        name=spec.name,
        source_dir=source_root / spec.name,
        binary_dir=binary_root / spec.name,
        install_dir=install_prefix / spec.install_dirname,
    )


def default_install_prefix(project_dir: str | Path, project_name: str) -> Path:
    """宿主工程相邻的默认安装根目录"""
    base = Path(project_dir).resolve().parent
    return base / f"{project_name}_dependencies_install"


def default_build_type(requested: str, multi_config: bool) -> str:
    """多配置生成器返回空串（由 --config 决定），否则返回校验后的构建类型"""
    if multi_config:
        return ""
    build_type = requested or DEFAULT_BUILD_TYPE
    if build_type not in BUILD_TYPES:
        logger.warning(
            "非常规构建类型 %s（常用: %s）", build_type, ", ".join(BUILD_TYPES),
        )
    return build_type


def remove_dir_if_empty(path: Path) -> bool:
    """目录存在且为空时删除，返回是否删除；有内容时绝不删除"""
    if not path.is_dir():
        return False
    if any(path.iterdir()):
        logger.debug("目录非空，保留: %s", path)
        return False
    path.rmdir()
    logger.info("已删除空的默认安装目录: %s", path)
    return True
