"""随包发布的 OpenSim 依赖清单"""

from __future__ import annotations

from pathlib import Path

import pytest

from superbuild.core.config import PACKAGED_MANIFEST, Config
from superbuild.core.dep.registry import ManifestRegistry
from superbuild.core.planner import Planner
from superbuild.core.settings import SettingsStore


def _load(system: str):
    return ManifestRegistry(PACKAGED_MANIFEST, system=system).load()


def _plan(tmp_path: Path, system: str = "Linux", **features: bool):
    m = _load(system)
    store = SettingsStore(tmp_path / "s.yml")
    for name, on in features.items():
        store.set_feature(name, on)
    cfg = Config(project_dir=str(tmp_path / "opensim-core"),
                 source_dir=str(tmp_path / "src"), binary_dir=str(tmp_path / "bin"))
    return Planner(m, store, cfg, system=system).build()


class TestShippedManifest:
    @pytest.mark.parametrize("system", ["Linux", "Darwin", "Windows"])
    def test_loads_on_every_platform(self, system):
        m = _load(system)
        assert m.project_name == "opensim"
        assert m.names() == ["ezc3d", "simbody", "docopt", "spdlog", "eigen",
                             "colpack", "adolc", "ipopt", "casadi"]
        assert set(m.features) == {"OPENSIM_WITH_CASADI", "OPENSIM_WITH_TROPTER"}

    def test_posix_custom_builds(self):
        m = _load("Linux")
        adolc, ipopt = m.get("adolc"), m.get("ipopt")
        assert adolc.kind == "custom"
        assert adolc.install_dirname == "adol-c"
        assert adolc.prerequisites == ["colpack"]
        assert adolc.source.git_tag == "releases/2.6.3"
        assert ipopt.kind == "custom"
        assert [s.cwd for s in ipopt.steps["patch"]] == ["{source_dir}/ThirdParty/Metis"] * 2 + [
            "{source_dir}/ThirdParty/Mumps"] * 2

    def test_windows_prebuilt(self):
        m = _load("Windows")
        assert m.get("adolc").kind == "prebuilt"
        assert m.get("adolc").prerequisites == []
        assert m.get("ipopt").kind == "prebuilt"
        assert m.get("ipopt").source.url.endswith("ipopt-mumps-flang-openblas-win64.zip")

    def test_default_plan(self, tmp_path: Path):
        plan = _plan(tmp_path)
        assert [i.name for i in plan.enabled] == ["simbody", "docopt", "spdlog"]
        assert [i.name for i in plan.disabled] == ["ezc3d"]
        assert plan.gated == ["eigen", "colpack", "adolc", "ipopt", "casadi"]
        assert plan.install_prefix == tmp_path / "opensim_dependencies_install"

    def test_tropter_plan(self, tmp_path: Path):
        plan = _plan(tmp_path, OPENSIM_WITH_TROPTER=True)
        names = [i.name for i in plan.enabled]
        assert names == ["simbody", "docopt", "spdlog", "eigen", "colpack", "adolc", "ipopt"]
        assert plan.gated == ["casadi"]
        assert plan.get("adolc").layout.install_dir.name == "adol-c"

    def test_casadi_plan(self, tmp_path: Path):
        plan = _plan(tmp_path, OPENSIM_WITH_CASADI=True)
        names = [i.name for i in plan.enabled]
        assert "adolc" not in names
        assert names.index("ipopt") < names.index("casadi")
        assert [i.name for i in plan.disabled] == ["ezc3d", "adolc"]
        prefix = tmp_path / "opensim_dependencies_install"
        assert f"-DCMAKE_PREFIX_PATH:PATH={prefix}/ipopt" in plan.get("casadi").rendered_args()
