"""依赖清单加载

职责:
- 从 YAML 清单加载 project / features / dependencies 三个段
- 按当前平台族合并 platforms 覆盖项
- 逐条校验声明（缺字段、来源冲突等），失败即终止，不产出部分清单
"""

from __future__ import annotations

import logging
import platform
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from superbuild.core.dep.models import (
    KIND_CMAKE,
    DependencySpec,
    FeatureSwitch,
    SourceLocator,
    Step,
)
from superbuild.core.exceptions import ConfigError, ValidationError
from superbuild.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)


def platform_families(system: str | None = None) -> list[str]:
    """返回当前平台族，按从宽到窄排列，后者的覆盖项优先"""
    system = (system or platform.system()).lower()
    if system.startswith("win"):
        return ["windows"]
    if system == "darwin":
        return ["posix", "darwin"]
    return ["posix", system]


@dataclass
class Manifest:
    """加载后的依赖清单"""

    project_name: str = "project"
    features: dict[str, FeatureSwitch] = field(default_factory=dict)
    dependencies: list[DependencySpec] = field(default_factory=list)

    def get(self, name: str) -> DependencySpec | None:
        for spec in self.dependencies:
            if spec.name == name:
                return spec
        return None

    def names(self) -> list[str]:
        return [s.name for s in self.dependencies]


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]


def _parse_steps(name: str, raw: Any) -> dict[str, list[Step]]:
    if not raw:
        return {}
    if not isinstance(raw, dict):
        raise ValidationError(f"依赖 '{name}' 的 steps 必须是 阶段 -> 命令列表 的映射")
    steps: dict[str, list[Step]] = {}
    for phase, items in raw.items():
        parsed: list[Step] = []
        for item in _as_steps(items):
            if isinstance(item, str):
                step = Step(cmd=item)
            elif isinstance(item, dict) and item.get("cmd"):
                step = Step(cmd=str(item["cmd"]), cwd=str(item.get("cwd", "")))
            else:
                raise ValidationError(f"依赖 '{name}' 的 {phase} 步骤格式无效: {item!r}")
            # 命令在执行时才切分，引号不配对要在拉取之前报出
            try:
                shlex.split(step.cmd)
            except ValueError as e:
                raise ValidationError(
                    f"依赖 '{name}' 的 {phase} 步骤无法解析: {step.cmd!r} ({e})",
                ) from e
            parsed.append(step)
        steps[str(phase)] = parsed
    return steps


def _as_steps(items: Any) -> list[Any]:
    if items is None:
        return []
    if isinstance(items, (str, dict)):
        return [items]
    return list(items)


def _merge_platform(entry: dict[str, Any], families: list[str]) -> dict[str, Any]:
    """把 platforms.<family> 覆盖项合并到条目上"""
    overrides = entry.get("platforms") or {}
    merged = {k: v for k, v in entry.items() if k != "platforms"}
    for family in families:
        patch = overrides.get(family)
        if not patch:
            continue
        # 覆盖项换了来源形式时，丢弃基础条目中的另一种来源
        if "url" in patch:
            merged.pop("git_url", None)
            merged.pop("git_tag", None)
        if "git_url" in patch:
            merged.pop("url", None)
        merged.update(patch)
    return merged


def parse_dependency(entry: dict[str, Any], families: list[str]) -> DependencySpec:
    """解析单条依赖声明并校验"""
    if not isinstance(entry, dict):
        raise ValidationError(f"依赖声明必须是映射: {entry!r}")
    data = _merge_platform(entry, families)
    name = str(data.get("name") or "")
    spec = DependencySpec(
        name=name,
        source=SourceLocator(
            url=str(data.get("url") or ""),
            git_url=str(data.get("git_url") or ""),
            git_tag=str(data.get("git_tag") or ""),
        ),
        default=bool(data.get("default", True)),
        prerequisites=_as_list(data.get("depends")),
        extra_args=_as_list(data.get("cmake_args")),
        kind=str(data.get("kind") or KIND_CMAKE),
        install_name=str(data.get("install_name") or ""),
        gate=_as_list(data.get("gate")),
        condition=_as_list(data.get("condition")),
        advanced=bool(data.get("advanced", False)),
        steps=_parse_steps(name or "?", data.get("steps")),
        description=str(data.get("description") or ""),
    )
    spec.validate()
    return spec


class ManifestRegistry:
    """依赖清单注册表 - 从 YAML 文件加载依赖声明"""

    def __init__(self, manifest_path: str | Path, system: str | None = None) -> None:
        self.manifest_path = Path(manifest_path)
        self.families = platform_families(system)

    def load(self) -> Manifest:
        if not self.manifest_path.exists():
            raise ConfigError(f"依赖清单不存在: {self.manifest_path}")
        try:
            data = load_yaml(self.manifest_path)
        except (yaml.YAMLError, ValueError) as e:
            raise ConfigError(f"依赖清单无法读取: {self.manifest_path} - {e}") from e
        return self.parse(data)

    def parse(self, data: dict[str, Any]) -> Manifest:
        project = data.get("project") or {}
        manifest = Manifest(project_name=str(project.get("name") or "project"))

        for name, info in (data.get("features") or {}).items():
            info = info or {}
            manifest.features[name] = FeatureSwitch(
                name=name,
                default=bool(info.get("default", False)),
                description=str(info.get("description", "")),
            )

        raw_deps = data.get("dependencies") or []
        if not isinstance(raw_deps, list):
            raise ValidationError("dependencies 段必须是列表")
        for entry in raw_deps:
            manifest.dependencies.append(parse_dependency(entry, self.families))

        logger.info(
            "已加载依赖清单 %s: %d 个依赖, %d 个特性开关 (平台: %s)",
            self.manifest_path.name, len(manifest.dependencies),
            len(manifest.features), "/".join(self.families),
        )
        return manifest

    @staticmethod
    def list_dependencies(manifest: Manifest) -> list[dict[str, str]]:
        """格式化依赖列表用于查询"""
        results = []
        for spec in manifest.dependencies:
            info: dict[str, str] = {
                "name": spec.name,
                "kind": spec.kind,
                "source": spec.source.describe(),
                "depends": ",".join(spec.prerequisites),
                "gate": " or ".join(spec.gate),
            }
            results.append(info)
        return results
