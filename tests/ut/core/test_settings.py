"""持久化设置存储单元测试"""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from superbuild.core.exceptions import ConfigError
from superbuild.core.settings import SettingsStore, parse_bool
from superbuild.utils import yaml_io


class TestParseBool:
    @pytest.mark.parametrize("text", ["ON", "on", "TRUE", "Yes", "1", "y"])
    def test_true(self, text):
        assert parse_bool(text) is True

    @pytest.mark.parametrize("text", ["OFF", "false", "NO", "0", ""])
    def test_false(self, text):
        assert parse_bool(text) is False

    def test_bool_passthrough(self):
        assert parse_bool(True) is True

    def test_invalid(self):
        with pytest.raises(ValueError, match="无法解析为布尔值"):
            parse_bool("maybe")


class TestSettingsStore:
    """首次播种、之后复用、覆盖被记住"""

    def test_seed_with_default(self, tmp_path: Path):
        store = SettingsStore(tmp_path / "s.yml")
        assert store.has_toggle("SUPERBUILD_a") is False
        assert store.toggle("SUPERBUILD_a", True) is True
        assert store.has_toggle("SUPERBUILD_a") is True

    def test_stored_value_wins_over_default(self, tmp_path: Path):
        store = SettingsStore(tmp_path / "s.yml")
        store.set_toggle("SUPERBUILD_a", False)
        assert store.toggle("SUPERBUILD_a", True) is False

    def test_persisted_across_instances(self, tmp_path: Path):
        path = tmp_path / "build" / "superbuild-settings.yml"
        s1 = SettingsStore(path)
        s1.toggle("SUPERBUILD_a", True)
        s1.set_toggle("SUPERBUILD_b", False)
        s1.set_feature("WITH_X", True)
        s1.set("CMAKE_INSTALL_PREFIX", "/opt/deps")
        s1.save()

        s2 = SettingsStore(path)
        assert s2.toggle("SUPERBUILD_a", False) is True
        assert s2.toggle("SUPERBUILD_b", True) is False
        assert s2.feature("WITH_X", False) is True
        assert s2.get("CMAKE_INSTALL_PREFIX") == "/opt/deps"

    def test_file_layout(self, tmp_path: Path):
        path = tmp_path / "s.yml"
        store = SettingsStore(path)
        store.toggle("SUPERBUILD_a", True)
        store.feature("WITH_X", False)
        store.set("CMAKE_BUILD_TYPE", "Release")
        store.save()
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
        assert data == {
            "toggles": {"SUPERBUILD_a": True},
            "features": {"WITH_X": False},
            "values": {"CMAKE_BUILD_TYPE": "Release"},
        }

    def test_unset_and_default(self, tmp_path: Path):
        store = SettingsStore(tmp_path / "s.yml")
        store.set("K", "v")
        store.unset("K")
        store.unset("missing")
        assert store.get("K", "fallback") == "fallback"

    def test_snapshot_is_copy(self, tmp_path: Path):
        store = SettingsStore(tmp_path / "s.yml")
        store.set("K", "v")
        snap = store.snapshot()
        snap["values"]["K"] = "changed"
        assert store.get("K") == "v"

    def test_save_leaves_no_temp_files(self, tmp_path: Path):
        store = SettingsStore(tmp_path / "d" / "s.yml")
        store.set("K", "v")
        store.save()
        assert [p.name for p in (tmp_path / "d").iterdir()] == ["s.yml"]


class TestHandEditedSettings:
    """手工编辑过的设置文件"""

    def test_quoted_strings_parsed_as_bool(self, tmp_path: Path):
        path = tmp_path / "s.yml"
        path.write_text(
            "toggles:\n  SUPERBUILD_a: 'OFF'\n  SUPERBUILD_b: 'on'\n"
            "features:\n  WITH_X: 'false'\n",
            encoding="utf-8",
        )
        store = SettingsStore(path)
        assert store.toggle("SUPERBUILD_a", True) is False
        assert store.toggle("SUPERBUILD_b", False) is True
        assert store.feature("WITH_X", True) is False
        store.save()
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
        assert data["toggles"]["SUPERBUILD_a"] is False

    def test_unparseable_toggle(self, tmp_path: Path):
        path = tmp_path / "s.yml"
        path.write_text("toggles:\n  SUPERBUILD_a: maybe\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="SUPERBUILD_a"):
            SettingsStore(path).toggle("SUPERBUILD_a", True)

    def test_malformed_yaml(self, tmp_path: Path):
        path = tmp_path / "s.yml"
        path.write_text("toggles: {SUPERBUILD_a: true\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="设置文件无法读取"):
            SettingsStore(path)

    def test_oversized_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(yaml_io, "MAX_YAML_SIZE", 10)
        path = tmp_path / "s.yml"
        path.write_text("values:\n  CMAKE_INSTALL_PREFIX: /opt/deps\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="过大"):
            SettingsStore(path)
