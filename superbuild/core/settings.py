"""持久化设置存储

跨多次调用记住操作员的选择（依赖开关、特性开关、安装根目录、构建类型）。
语义与构建工具缓存一致:
  - 首次运行用声明的默认值播种
  - 之后的运行复用已存储的值
  - 显式覆盖（-D KEY=VALUE）替换存储值并被记住

进程开始时加载一次，结束时原子写回。
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from superbuild.core.exceptions import ConfigError
from superbuild.utils.yaml_io import load_yaml, save_yaml

logger = logging.getLogger(__name__)

_TRUE = frozenset(("1", "on", "true", "yes", "y"))
_FALSE = frozenset(("0", "off", "false", "no", "n", ""))


def parse_bool(value: Any) -> bool:
    """解析 ON/OFF/TRUE/FALSE/YES/NO/1/0（大小写不敏感）"""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"无法解析为布尔值: {value!r}")


class SettingsStore:
    """YAML 设置文件，分 toggles / features / values 三段"""

    def __init__(self, settings_file: str | Path) -> None:
        self.settings_file = Path(settings_file)
        try:
            self._data: dict[str, Any] = load_yaml(self.settings_file)
        except (yaml.YAMLError, ValueError) as e:
            raise ConfigError(f"设置文件无法读取: {self.settings_file} - {e}") from e

    def _section(self, key: str) -> dict[str, Any]:
        result: dict[str, Any] = self._data.setdefault(key, {})
        return result

    def _stored_bool(self, section: str, name: str) -> bool:
        """读取已存储的布尔值；手工编辑写成 "OFF" 之类的字符串也按布尔解析"""
        section_data = self._section(section)
        try:
            value = parse_bool(section_data[name])
        except ValueError as e:
            raise ConfigError(f"设置文件 {self.settings_file} 中 {name} 的值无效: {e}") from e
        section_data[name] = value
        return value

    # ---- 依赖开关 ----

    def toggle(self, name: str, default: bool) -> bool:
        """读取依赖开关；不存在时以默认值播种"""
        toggles = self._section("toggles")
        if name not in toggles:
            toggles[name] = bool(default)
        return self._stored_bool("toggles", name)

    def has_toggle(self, name: str) -> bool:
        return name in self._section("toggles")

    def set_toggle(self, name: str, value: bool) -> None:
        self._section("toggles")[name] = bool(value)

    # ---- 特性开关 ----

    def feature(self, name: str, default: bool) -> bool:
        features = self._section("features")
        if name not in features:
            features[name] = bool(default)
        return self._stored_bool("features", name)

    def set_feature(self, name: str, value: bool) -> None:
        self._section("features")[name] = bool(value)

    # ---- 标量值（安装根目录 / 构建类型等） ----

    def get(self, key: str, default: str = "") -> str:
        return str(self._section("values").get(key, default) or "")

    def set(self, key: str, value: str) -> None:
        self._section("values")[key] = value

    def unset(self, key: str) -> None:
        self._section("values").pop(key, None)

    def snapshot(self) -> dict[str, Any]:
        return {k: dict(v) for k, v in self._data.items() if isinstance(v, dict)}

    def save(self) -> None:
        """原子写回设置文件"""
        save_yaml(self.settings_file, self._data)
        logger.debug("设置已保存: %s", self.settings_file)
