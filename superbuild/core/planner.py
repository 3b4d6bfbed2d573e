"""构建计划

把「静态依赖清单 + 特性开关 + 持久化开关 + 工具链设置」一次性计算成
一份不可变的 BuildPlan:
  - enabled:  需要构建的依赖（拓扑序），附带目录布局和组装好的配置参数
  - disabled: 参与但被关闭的依赖，需要清理旧产物
  - gated:    所属特性组未开启，本次完全不参与

条件默认值（依赖开关的有效默认取决于特性开关）用纯函数 effective_defaults 表达，
在计划构建时只求值一次。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from superbuild.core.config import Config
from superbuild.core.dep.models import KIND_CMAKE, TOGGLE_PREFIX, DependencySpec
from superbuild.core.dep.registry import Manifest
from superbuild.core.dep.resolver import DependencyResolver
from superbuild.core.exceptions import ValidationError
from superbuild.core.layout import (
    DEFAULT_BUILD_TYPE,
    InstallLayout,
    default_build_type,
    default_install_prefix,
    resolve_layout,
)
from superbuild.core.settings import SettingsStore, parse_bool
from superbuild.core.toolchain import TOOLCHAIN_KEYS, ToolArg, Toolchain, assemble_args

logger = logging.getLogger(__name__)

INSTALL_PREFIX_KEY = "CMAKE_INSTALL_PREFIX"
BUILD_TYPE_KEY = "CMAKE_BUILD_TYPE"
DEFAULT_PREFIX_KEY = "DEFAULT_INSTALL_PREFIX"


# =========================================================================
# 条件默认值（纯函数）
# =========================================================================


def is_considered(spec: DependencySpec, features: dict[str, bool]) -> bool:
    """所属特性组是否开启；未声明 gate 的依赖总是参与"""
    return not spec.gate or any(features.get(f, False) for f in spec.gate)


def condition_met(spec: DependencySpec, features: dict[str, bool]) -> bool:
    return not spec.condition or any(features.get(f, False) for f in spec.condition)


def effective_defaults(
    specs: list[DependencySpec], features: dict[str, bool],
) -> dict[str, bool | None]:
    """每个依赖开关的有效默认值；None 表示本次不参与"""
    result: dict[str, bool | None] = {}
    for spec in specs:
        if not is_considered(spec, features):
            result[spec.name] = None
        elif condition_met(spec, features):
            result[spec.name] = spec.default
        else:
            result[spec.name] = False
    return result


# =========================================================================
# 覆盖项
# =========================================================================


def apply_overrides(manifest: Manifest, store: SettingsStore, overrides: dict[str, str]) -> list[str]:
    """把 -D KEY=VALUE 覆盖写入设置存储，返回未识别的键"""
    toggles = {s.toggle_name for s in manifest.dependencies}
    ignored: list[str] = []
    for key, value in overrides.items():
        try:
            if key in toggles:
                store.set_toggle(key, parse_bool(value))
            elif key in manifest.features:
                store.set_feature(key, parse_bool(value))
            elif key == INSTALL_PREFIX_KEY:
                if value:
                    store.set(key, str(Path(value).expanduser().resolve()))
                else:
                    store.unset(key)
            elif key == BUILD_TYPE_KEY or key in TOOLCHAIN_KEYS:
                store.set(key, value)
            else:
                ignored.append(key)
        except ValueError as e:
            raise ValidationError(f"参数 {key} 的值无效: {e}") from e
    for key in ignored:
        hint = "（没有同名依赖）" if key.startswith(TOGGLE_PREFIX) else ""
        logger.warning("未使用的参数: %s%s", key, hint)
    return ignored


# =========================================================================
# 计划数据
# =========================================================================


@dataclass
class PlannedDependency:
    """一个需要构建的依赖"""

    spec: DependencySpec
    layout: InstallLayout
    tool_args: list[ToolArg] = field(default_factory=list)
    prerequisites: list[str] = field(default_factory=list)  # 计划内的前置依赖

    @property
    def name(self) -> str:
        return self.spec.name

    def rendered_args(self) -> list[str]:
        return [a.render() for a in self.tool_args]


@dataclass
class BuildPlan:
    """一次运行的完整计划"""

    project_name: str
    install_prefix: Path
    default_install_prefix: Path
    source_root: Path
    binary_root: Path
    build_type: str             # 单配置生成器下传给依赖的构建类型，多配置时为空
    config_type: str            # --config / {build_type} 使用的构建类型
    toolchain: Toolchain
    build_flags: str = ""
    make_program: str = "make"
    features: dict[str, bool] = field(default_factory=dict)
    toggles: dict[str, bool] = field(default_factory=dict)
    enabled: list[PlannedDependency] = field(default_factory=list)
    disabled: list[PlannedDependency] = field(default_factory=list)
    gated: list[str] = field(default_factory=list)
    previous_default_prefix: Path | None = None   # 宿主工程移动前记录的默认根目录

    @property
    def uses_default_prefix(self) -> bool:
        return self.install_prefix == self.default_install_prefix

    def stale_default_roots(self) -> list[Path]:
        """可能残留的默认安装根目录，不含本次使用的安装根目录"""
        roots = [self.default_install_prefix]
        if self.previous_default_prefix:
            roots.append(self.previous_default_prefix)
        return [r for r in roots if r != self.install_prefix]

    def get(self, name: str) -> PlannedDependency | None:
        for item in self.enabled:
            if item.name == name:
                return item
        return None

    def placeholders(self, item: PlannedDependency) -> dict[str, str]:
        """自定义步骤与参数中可用的占位符"""
        return {
            "source_dir": str(item.layout.source_dir),
            "binary_dir": str(item.layout.binary_dir),
            "build_dir": str(item.layout.build_dir),
            "install_dir": str(item.layout.install_dir),
            "install_prefix": str(self.install_prefix),
            "source_root": str(self.source_root),
            "make": self.make_program,
            "build_flags": self.build_flags,
            "build_type": self.config_type,
        }


# =========================================================================
# 计划器
# =========================================================================


class Planner:
    """根据清单与设置生成 BuildPlan"""

    def __init__(
        self,
        manifest: Manifest,
        store: SettingsStore,
        config: Config,
        system: str | None = None,
    ) -> None:
        self.manifest = manifest
        self.store = store
        self.config = config
        self.system = system

    def build(self) -> BuildPlan:
        manifest, store, cfg = self.manifest, self.store, self.config
        resolver = DependencyResolver(manifest.dependencies, manifest.features)
        resolver.validate()

        features = {
            name: store.feature(name, fs.default) for name, fs in manifest.features.items()
        }
        toolchain = Toolchain.from_values(store.snapshot().get("values", {}), system=self.system)
        if not toolchain.generator:
            toolchain.generator = cfg.generator

        default_prefix = default_install_prefix(cfg.project_dir, manifest.project_name)
        previous = store.get(DEFAULT_PREFIX_KEY)
        store.set(DEFAULT_PREFIX_KEY, str(default_prefix))
        previous_prefix = Path(previous) if previous and Path(previous) != default_prefix else None
        chosen = store.get(INSTALL_PREFIX_KEY) or cfg.install_prefix
        install_prefix = Path(chosen).expanduser().resolve() if chosen else default_prefix

        config_type = store.get(BUILD_TYPE_KEY) or cfg.build_type or DEFAULT_BUILD_TYPE
        build_type = default_build_type(config_type, toolchain.is_multi_config)
        if build_type:
            store.set(BUILD_TYPE_KEY, build_type)

        plan = BuildPlan(
            project_name=manifest.project_name,
            install_prefix=install_prefix,
            default_install_prefix=default_prefix,
            previous_default_prefix=previous_prefix,
            source_root=Path(cfg.source_dir).resolve(),
            binary_root=Path(cfg.binary_dir).resolve(),
            build_type=build_type,
            config_type=config_type,
            toolchain=toolchain,
            build_flags=toolchain.build_flags(cfg.build_jobs),
            make_program=cfg.make_program,
            features=features,
        )

        defaults = effective_defaults(manifest.dependencies, features)
        enabled_names: list[str] = []
        for spec in manifest.dependencies:
            default = defaults[spec.name]
            if default is None:
                plan.gated.append(spec.name)
                continue
            # 条件不满足时强制关闭，但不改写已存储的选择
            on = store.toggle(spec.toggle_name, default) if condition_met(spec, features) else False
            plan.toggles[spec.toggle_name] = on
            layout = resolve_layout(spec, plan.source_root, plan.binary_root, install_prefix)
            if on:
                enabled_names.append(spec.name)
            else:
                plan.disabled.append(PlannedDependency(spec=spec, layout=layout))

        by_name = {s.name: s for s in manifest.dependencies}
        for name in resolver.order(enabled_names):
            spec = by_name[name]
            layout = resolve_layout(spec, plan.source_root, plan.binary_root, install_prefix)
            item = PlannedDependency(
                spec=spec, layout=layout,
                prerequisites=resolver.prerequisites_within(name, enabled_names),
            )
            for missing in set(spec.prerequisites) - set(item.prerequisites):
                logger.warning(
                    "依赖 %s 的前置依赖 %s 未启用，视为已由外部提供", name, missing,
                )
            if spec.kind == KIND_CMAKE:
                item.tool_args = assemble_args(
                    str(layout.install_dir), build_type, toolchain,
                    spec.extra_args, plan.placeholders(item),
                )
            plan.enabled.append(item)

        logger.info(
            "构建计划: 启用 %d [%s], 关闭 %d, 未参与 %d",
            len(plan.enabled), ", ".join(i.name for i in plan.enabled),
            len(plan.disabled), len(plan.gated),
        )
        return plan
