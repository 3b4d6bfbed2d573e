"""依赖声明数据模型

数据类:
- SourceLocator: 源码位置（归档 URL 或 git 地址 + 版本钉）
- Step: 阶段内的单条命令（非声明式依赖使用）
- DependencySpec: 依赖清单中的一项
- FeatureSwitch: 控制一组依赖是否参与的总开关
"""

from __future__ import annotations

from dataclasses import dataclass, field

from superbuild.core.exceptions import ValidationError

# 生命周期阶段，按执行顺序排列；patch 只有非声明式依赖会用到
PHASES = ("fetch", "patch", "configure", "build", "install")
STEP_PHASES = ("patch", "configure", "build", "install")

KIND_CMAKE = "cmake"
KIND_PREBUILT = "prebuilt"
KIND_CUSTOM = "custom"
KINDS = (KIND_CMAKE, KIND_PREBUILT, KIND_CUSTOM)

TOGGLE_PREFIX = "SUPERBUILD_"


@dataclass(frozen=True)
class SourceLocator:
    """源码位置，归档 URL 与 (git_url, git_tag) 二选一"""

    url: str = ""
    git_url: str = ""
    git_tag: str = ""

    @property
    def is_git(self) -> bool:
        return bool(self.git_url)

    def validate(self, name: str) -> None:
        has_git = bool(self.git_url or self.git_tag)
        if self.url and has_git:
            raise ValidationError(
                f"依赖 '{name}' 同时指定了 url 与 git_url/git_tag，只能二选一",
            )
        if not self.url and not has_git:
            raise ValidationError(f"依赖 '{name}' 缺少来源: 需要 url 或 git_url + git_tag")
        if has_git and not (self.git_url and self.git_tag):
            raise ValidationError(f"依赖 '{name}' 的 git_url 与 git_tag 必须同时提供")

    def describe(self) -> str:
        if self.is_git:
            return f"git {self.git_url}@{self.git_tag}"
        return f"url {self.url}"


@dataclass(frozen=True)
class Step:
    """阶段内的一条命令；cmd/cwd 中可使用 {source_dir} 等占位符"""

    cmd: str
    cwd: str = ""


@dataclass(frozen=True)
class FeatureSwitch:
    """特性总开关"""

    name: str
    default: bool = False
    description: str = ""


@dataclass
class DependencySpec:
    """依赖清单中的一项"""

    name: str
    source: SourceLocator
    default: bool = True
    prerequisites: list[str] = field(default_factory=list)
    extra_args: list[str] = field(default_factory=list)
    kind: str = KIND_CMAKE
    install_name: str = ""
    gate: list[str] = field(default_factory=list)       # 任一特性开启时才参与
    condition: list[str] = field(default_factory=list)  # 任一特性开启时开关才可生效
    advanced: bool = False
    steps: dict[str, list[Step]] = field(default_factory=dict)
    description: str = ""

    @property
    def toggle_name(self) -> str:
        return f"{TOGGLE_PREFIX}{self.name}"

    @property
    def install_dirname(self) -> str:
        return self.install_name or self.name

    def validate(self) -> None:
        """校验单条声明，失败抛 ValidationError（不触发任何网络访问）"""
        if not self.name:
            raise ValidationError("依赖 name 为必填")
        self.source.validate(self.name)
        if self.kind not in KINDS:
            raise ValidationError(
                f"依赖 '{self.name}' 的 kind 无效: {self.kind}，可选: {', '.join(KINDS)}",
            )
        if self.kind == KIND_PREBUILT and self.source.is_git:
            raise ValidationError(f"预编译依赖 '{self.name}' 必须使用归档 url")
        if self.kind == KIND_CUSTOM and not any(self.steps.values()):
            raise ValidationError(f"自定义依赖 '{self.name}' 未定义任何 steps")
        unknown = set(self.steps) - set(STEP_PHASES)
        if unknown:
            raise ValidationError(
                f"依赖 '{self.name}' 的 steps 包含未知阶段: {sorted(unknown)}",
            )
        if self.name in self.prerequisites:
            raise ValidationError(f"依赖 '{self.name}' 不能依赖自身")
