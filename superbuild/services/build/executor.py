"""依赖生命周期执行器

职责:
- 按 fetch → (patch) → configure → build → install 严格顺序执行单个依赖
- 三种形态共用同一套四阶段描述:
    cmake:    声明式，配置参数写入初始缓存脚本后调用 cmake
    prebuilt: configure / build 为空操作，install 为目录平铺拷贝
    custom:   每个阶段是一组有序的子步骤命令
- 基于 stamp 的断点续跑
- 清理被关闭依赖的中间构建目录与安装目录
"""

from __future__ import annotations

import logging
import shlex
import shutil
import subprocess
import time
from pathlib import Path
from typing import Any, Callable

from superbuild.core.dep.fetcher import SourceFetcher
from superbuild.core.dep.models import KIND_CMAKE, KIND_PREBUILT
from superbuild.core.exceptions import DependencyError, PhaseError, SuperbuildError
from superbuild.core.models import DependencyResult, DepStatus, PhaseResult
from superbuild.core.planner import BuildPlan, PlannedDependency
from superbuild.core.toolchain import ToolArg, expand_placeholders
from superbuild.services.build.stamps import StampStore, fingerprint
from superbuild.utils.shell import CommandExecutor, format_cmd, get_executor

logger = logging.getLogger(__name__)

PhaseAction = Callable[[], str]


def _cache_escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def write_initial_cache(path: Path, args: list[ToolArg]) -> Path:
    """把配置参数写成 cmake -C 可读取的初始缓存脚本"""
    lines = [
        f'set({a.name} "{_cache_escape(a.value)}" CACHE {a.type or "STRING"} "Initial cache" FORCE)'
        for a in args
    ]
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


class LifecycleExecutor:
    """单个依赖的四阶段执行器"""

    def __init__(
        self,
        fetcher: SourceFetcher | None = None,
        executor: CommandExecutor | None = None,
        cmake_program: str = "cmake",
        timeout: int | None = None,
    ) -> None:
        self._executor = executor
        self.fetcher = fetcher or SourceFetcher(executor=executor)
        self.cmake_program = cmake_program
        self.timeout = timeout

    @property
    def executor(self) -> CommandExecutor:
        return self._executor or get_executor()

    # ------------------------------------------------------------------
    # 执行
    # ------------------------------------------------------------------

    def run(self, plan: BuildPlan, item: PlannedDependency) -> DependencyResult:
        """执行一个依赖的完整生命周期，阶段失败时返回 FAILED 结果"""
        layout = item.layout
        result = DependencyResult(
            name=item.name, status=DepStatus.UP_TO_DATE, started_at=time.monotonic(),
        )
        stamps = StampStore(layout.stamp_dir, item.name)
        for d in (layout.tmp_dir, layout.stamp_dir, layout.build_dir):
            d.mkdir(parents=True, exist_ok=True)

        rerun = False
        try:
            for phase, inputs, action in self.phases(plan, item):
                if action is None:
                    result.phases.append(PhaseResult(phase=phase, status="skipped"))
                    continue
                fp = fingerprint(inputs)
                if not rerun and stamps.is_current(phase, fp) and layout.source_dir.exists():
                    result.phases.append(PhaseResult(phase=phase, status="up_to_date"))
                    continue
                rerun = True
                stamps.invalidate_from(phase)
                result.phases.append(self._run_phase(item.name, phase, action))
                stamps.mark(phase, fp)
        except PhaseError as e:
            result.status = DepStatus.FAILED
            result.failed_phase = e.phase
            result.message = str(e)
            result.phases.append(PhaseResult(
                phase=e.phase, status="failed", returncode=e.returncode,
            ))
            logger.error("%s", e, extra={"dep": item.name, "phase": e.phase})
        else:
            if rerun:
                result.status = DepStatus.INSTALLED
            result.message = f"已安装到 {layout.install_dir}"
        result.finished_at = time.monotonic()
        result.duration = result.finished_at - result.started_at
        return result

    def _run_phase(self, name: str, phase: str, action: PhaseAction) -> PhaseResult:
        logger.info("[%s] %s", name, phase, extra={"dep": name, "phase": phase})
        start = time.monotonic()
        try:
            output = action()
        except PhaseError:
            raise
        except SuperbuildError as e:
            raise PhaseError(name, phase, str(e)) from e
        except OSError as e:
            raise PhaseError(name, phase, f"文件操作失败: {e}") from e
        except ValueError as e:
            raise PhaseError(name, phase, f"命令无法解析: {e}") from e
        return PhaseResult(
            phase=phase, status="done", duration=time.monotonic() - start,
            returncode=0, output=output,
        )

    # ------------------------------------------------------------------
    # 阶段描述
    # ------------------------------------------------------------------

    def phases(
        self, plan: BuildPlan, item: PlannedDependency,
    ) -> list[tuple[str, dict[str, Any], PhaseAction | None]]:
        """返回 (阶段名, 指纹输入, 动作)，动作为 None 表示空操作"""
        spec, layout = item.spec, item.layout
        steps = {k: [(s.cmd, s.cwd) for s in v] for k, v in spec.steps.items()}

        def fetch() -> str:
            self.fetcher.fetch(spec.name, spec.source, layout.source_dir, layout.tmp_dir)
            if spec.source.is_git:
                return self.fetcher.head_commit(layout.source_dir) or spec.source.git_tag
            return str(layout.source_dir)

        result: list[tuple[str, dict[str, Any], PhaseAction | None]] = [
            ("fetch", {"source": spec.source.describe()}, fetch),
        ]
        if steps.get("patch"):
            result.append(("patch", {"steps": steps["patch"]}, self._steps_action(plan, item, "patch")))

        if spec.kind == KIND_CMAKE:
            result += [
                ("configure", {
                    "args": item.rendered_args(),
                    "generator": plan.toolchain.generator,
                }, lambda: self._cmake_configure(plan, item)),
                ("build", {"config": plan.config_type},
                 lambda: self._cmake_build(plan, item, install=False)),
                ("install", {"install_dir": str(layout.install_dir)},
                 lambda: self._cmake_build(plan, item, install=True)),
            ]
        elif spec.kind == KIND_PREBUILT:
            result += [
                ("configure", {}, None),
                ("build", {}, None),
                ("install", {"install_dir": str(layout.install_dir)},
                 lambda: self._copy_install(item)),
            ]
        else:
            for phase in ("configure", "build", "install"):
                action = self._steps_action(plan, item, phase) if steps.get(phase) else None
                inputs = {
                    "steps": steps.get(phase, []),
                    "placeholders": plan.placeholders(item),
                }
                result.append((phase, inputs, action))
        return result

    def _command(self, name: str, phase: str, cmd: list[str], cwd: Path) -> str:
        logger.info("  %s: %s (cwd=%s)", phase, format_cmd(cmd), cwd)
        cwd.mkdir(parents=True, exist_ok=True)
        try:
            r = self.executor.execute(cmd, cwd=str(cwd), timeout=self.timeout)
        except subprocess.TimeoutExpired as e:
            raise PhaseError(name, phase, f"{format_cmd(cmd)} 超时（{self.timeout}秒）") from e
        if not r.success:
            raise PhaseError(name, phase, f"{format_cmd(cmd)} 退出码 {r.returncode}\n{r.tail()}", r.returncode)
        return r.tail()

    def _cmake_configure(self, plan: BuildPlan, item: PlannedDependency) -> str:
        layout = item.layout
        cache = write_initial_cache(
            layout.tmp_dir / f"{item.name}-cache-{plan.config_type}.cmake", item.tool_args,
        )
        cmd = [self.cmake_program, "-C", str(cache)]
        if plan.toolchain.generator:
            cmd += ["-G", plan.toolchain.generator]
        cmd.append(str(layout.source_dir))
        return self._command(item.name, "configure", cmd, layout.build_dir)

    def _cmake_build(self, plan: BuildPlan, item: PlannedDependency, install: bool) -> str:
        cmd = [self.cmake_program, "--build", "."]
        if install:
            cmd += ["--target", "install"]
        if plan.toolchain.is_multi_config:
            cmd += ["--config", plan.config_type]
        return self._command(item.name, "install" if install else "build", cmd, item.layout.build_dir)

    def _copy_install(self, item: PlannedDependency) -> str:
        layout = item.layout
        logger.info("  install: 拷贝 %s -> %s", layout.source_dir, layout.install_dir)
        shutil.copytree(layout.source_dir, layout.install_dir, dirs_exist_ok=True)
        return str(layout.install_dir)

    def _steps_action(self, plan: BuildPlan, item: PlannedDependency, phase: str) -> PhaseAction:
        placeholders = plan.placeholders(item)

        def action() -> str:
            outputs = []
            for step in item.spec.steps.get(phase, []):
                # 先切分再替换，路径中的空格不会破坏参数边界
                argv = [expand_placeholders(tok, placeholders) for tok in shlex.split(step.cmd)]
                argv = [a for a in argv if a]
                cwd = Path(expand_placeholders(step.cwd, placeholders)) if step.cwd else item.layout.build_dir
                outputs.append(self._command(item.name, phase, argv, cwd))
            return "\n".join(outputs)

        return action

    # ------------------------------------------------------------------
    # 清理
    # ------------------------------------------------------------------

    def clean(self, item: PlannedDependency) -> list[Path]:
        """删除关闭依赖的中间构建目录与安装目录；不存在时为空操作"""
        removed: list[Path] = []
        for path in (item.layout.binary_dir, item.layout.install_dir):
            if not path.exists():
                continue
            try:
                shutil.rmtree(path)
            except OSError as e:
                raise DependencyError(f"清理依赖 {item.name} 失败: {path} - {e}") from e
            removed.append(path)
            logger.info("已清理关闭的依赖 %s: %s", item.name, path)
        return removed
