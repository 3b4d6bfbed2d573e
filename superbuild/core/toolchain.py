"""工具链设置传播与构建参数组装

把宿主的全局设置（编译器、各构建配置的编译选项、平台部署目标、SWIG 路径）
传递给每个声明式依赖的配置步骤。

参数组装顺序:
  安装路径 → 构建类型（仅单配置生成器） → 编译器 → 编译选项
  → 部署目标（仅 macOS） → SWIG 路径 → 依赖自带的额外参数
额外参数与前面的参数同名时，前面的被丢弃（后写者胜）。
"""

from __future__ import annotations

import platform
import re
from dataclasses import dataclass, field
from typing import Any

from superbuild.core.exceptions import ValidationError

FLAG_CONFIGS = ("DEBUG", "MINSIZEREL", "RELEASE", "RELWITHDEBINFO")
MULTI_CONFIG_GENERATORS = ("Visual Studio", "Xcode", "Ninja Multi-Config")

_ARG_RE = re.compile(r"^(?:-D)?(?P<name>[A-Za-z_][A-Za-z0-9_.+-]*)(?::(?P<type>[A-Za-z]+))?=(?P<value>.*)$", re.S)

# 允许通过 -D 覆盖并持久化的工具链键
TOOLCHAIN_KEYS = (
    "CMAKE_C_COMPILER",
    "CMAKE_CXX_COMPILER",
    "CMAKE_C_FLAGS",
    "CMAKE_CXX_FLAGS",
    *(f"CMAKE_C_FLAGS_{c}" for c in FLAG_CONFIGS),
    *(f"CMAKE_CXX_FLAGS_{c}" for c in FLAG_CONFIGS),
    "CMAKE_OSX_DEPLOYMENT_TARGET",
    "SWIG_EXECUTABLE",
    "CMAKE_GENERATOR",
)


@dataclass(frozen=True)
class ToolArg:
    """单个缓存参数 NAME[:TYPE]=VALUE"""

    name: str
    value: str
    type: str = ""

    @classmethod
    def parse(cls, text: str) -> ToolArg:
        m = _ARG_RE.match(text.strip())
        if not m:
            raise ValidationError(f"无效的构建参数: {text!r}，格式应为 -DNAME[:TYPE]=VALUE")
        return cls(name=m.group("name"), value=m.group("value"), type=(m.group("type") or "").upper())

    def render(self) -> str:
        if self.type:
            return f"-D{self.name}:{self.type}={self.value}"
        return f"-D{self.name}={self.value}"


def expand_placeholders(template: str, values: dict[str, str]) -> str:
    """替换 {key} 占位符；未知占位符原样保留"""
    result = template
    for key, value in values.items():
        result = result.replace("{" + key + "}", value)
    return result


@dataclass
class Toolchain:
    """宿主工具链设置"""

    c_compiler: str = ""
    cxx_compiler: str = ""
    c_flags: dict[str, str] = field(default_factory=dict)    # "" 表示基础选项
    cxx_flags: dict[str, str] = field(default_factory=dict)
    osx_deployment_target: str = ""
    swig_executable: str = ""
    generator: str = ""
    system: str = field(default_factory=platform.system)

    @classmethod
    def from_values(cls, values: dict[str, Any], system: str | None = None) -> Toolchain:
        """从设置存储的 values 段构建"""
        tc = cls(system=system or platform.system())
        for key in TOOLCHAIN_KEYS:
            if values.get(key):
                tc.apply(key, str(values[key]))
        return tc

    def apply(self, key: str, value: str) -> bool:
        """应用单个 -D 覆盖，返回该键是否属于工具链"""
        if key == "CMAKE_C_COMPILER":
            self.c_compiler = value
        elif key == "CMAKE_CXX_COMPILER":
            self.cxx_compiler = value
        elif key == "CMAKE_OSX_DEPLOYMENT_TARGET":
            self.osx_deployment_target = value
        elif key == "SWIG_EXECUTABLE":
            self.swig_executable = value
        elif key == "CMAKE_GENERATOR":
            self.generator = value
        elif key.startswith(("CMAKE_C_FLAGS", "CMAKE_CXX_FLAGS")):
            lang, _, cfg = key.removeprefix("CMAKE_").partition("_FLAGS")
            if cfg and cfg.lstrip("_") not in FLAG_CONFIGS:
                return False
            target = self.c_flags if lang == "C" else self.cxx_flags
            target[cfg.lstrip("_")] = value
        else:
            return False
        return True

    @property
    def is_windows(self) -> bool:
        return self.system.lower().startswith("win")

    @property
    def is_darwin(self) -> bool:
        return self.system.lower() == "darwin"

    @property
    def is_multi_config(self) -> bool:
        return any(self.generator.startswith(g) for g in MULTI_CONFIG_GENERATORS)

    def build_flags(self, jobs: int) -> str:
        """自定义 make 步骤的并行参数；Windows 与 Xcode 下为空"""
        if self.is_windows or self.generator.startswith("Xcode") or jobs <= 0:
            return ""
        return f"-j{jobs}"

    def base_args(self) -> list[ToolArg]:
        """传播给每个依赖的工具链参数（未设置的项不传）"""
        args: list[ToolArg] = []
        if self.cxx_compiler:
            args.append(ToolArg("CMAKE_CXX_COMPILER", self.cxx_compiler, "STRING"))
        if self.c_compiler:
            args.append(ToolArg("CMAKE_C_COMPILER", self.c_compiler, "STRING"))
        for lang, flags in (("CXX", self.cxx_flags), ("C", self.c_flags)):
            for cfg in ("", *FLAG_CONFIGS):
                if flags.get(cfg):
                    suffix = f"_{cfg}" if cfg else ""
                    args.append(ToolArg(f"CMAKE_{lang}_FLAGS{suffix}", flags[cfg], "STRING"))
        if self.is_darwin and self.osx_deployment_target:
            args.append(ToolArg("CMAKE_OSX_DEPLOYMENT_TARGET", self.osx_deployment_target, "STRING"))
        if self.swig_executable:
            args.append(ToolArg("SWIG_EXECUTABLE", self.swig_executable, "FILEPATH"))
        return args


def assemble_args(
    install_dir: str,
    build_type: str,
    toolchain: Toolchain,
    extra_args: list[str],
    placeholders: dict[str, str] | None = None,
) -> list[ToolArg]:
    """组装一个依赖的完整配置参数列表"""
    args = [ToolArg("CMAKE_INSTALL_PREFIX", install_dir, "PATH")]
    if build_type and not toolchain.is_multi_config:
        args.append(ToolArg("CMAKE_BUILD_TYPE", build_type, "STRING"))
    args.extend(toolchain.base_args())

    for raw in extra_args:
        arg = ToolArg.parse(expand_placeholders(raw, placeholders or {}))
        args = [a for a in args if a.name != arg.name]
        args.append(arg)
    return args
