"""阶段检查点单元测试"""

from __future__ import annotations

from pathlib import Path

from superbuild.services.build.stamps import StampStore, fingerprint


class TestFingerprint:
    def test_key_order_irrelevant(self):
        assert fingerprint({"a": 1, "b": [1, 2]}) == fingerprint({"b": [1, 2], "a": 1})

    def test_changes_with_input(self):
        assert fingerprint({"args": ["-DX=1"]}) != fingerprint({"args": ["-DX=2"]})


class TestStampStore:
    def test_mark_and_check(self, tmp_path: Path):
        stamps = StampStore(tmp_path / "stamp", "eigen")
        stamps.mark("fetch", "abc")
        assert stamps.path("fetch") == tmp_path / "stamp" / "eigen-fetch"
        assert stamps.is_current("fetch", "abc")
        assert not stamps.is_current("fetch", "other")
        assert not stamps.is_current("configure", "abc")

    def test_invalidate_from_phase(self, tmp_path: Path):
        stamps = StampStore(tmp_path / "stamp", "ipopt")
        for phase in ("fetch", "patch", "configure", "build", "install"):
            stamps.mark(phase, "x")
        stamps.invalidate_from("configure")
        assert stamps.completed() == ["fetch", "patch"]
