"""编排器步骤实现

步骤顺序：
1. load_manifest - 加载并校验依赖清单
2. apply_settings - 把 -D 覆盖写入设置存储
3. plan - 计算启用子集、拓扑序与配置参数
4. cleanup - 清理关闭依赖的产物 + 旧默认安装目录中的空子目录
5. execute - 按依赖图调度执行四阶段生命周期
6. finalize - 旧默认安装根目录为空时删除
7. save_settings - 原子写回设置（无论成败）
"""

from __future__ import annotations

import functools
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from superbuild.core.dep.registry import Manifest
    from superbuild.services.container import ServiceContainer
    from superbuild.services.orchestrator.models import RunReport

from superbuild.core.layout import remove_dir_if_empty
from superbuild.core.planner import BuildPlan, Planner, apply_overrides
from superbuild.core.scheduler import DagScheduler

logger = logging.getLogger(__name__)


class OrchestrationSteps:
    """编排步骤集合"""

    def __init__(self, container: ServiceContainer) -> None:
        self.c = container

    def load_manifest(self, report: RunReport) -> Manifest:
        """步骤1: 加载依赖清单（声明校验失败即终止，不产出部分计划）"""
        manifest = self.c.registry.load()
        report.steps.append({
            "step": "load_manifest", "status": "done",
            "dependencies": len(manifest.dependencies),
            "features": len(manifest.features),
        })
        logger.info("[Step 1] 清单已加载: %s", self.c.registry.manifest_path)
        return manifest

    def apply_settings(self, manifest: Manifest, report: RunReport) -> None:
        """步骤2: 应用本次调用的覆盖项"""
        overrides = report.request.overrides
        if not overrides:
            report.steps.append({"step": "apply_settings", "status": "skipped"})
            return
        report.ignored_overrides = apply_overrides(manifest, self.c.settings, overrides)
        report.steps.append({
            "step": "apply_settings", "status": "done",
            "applied": len(overrides) - len(report.ignored_overrides),
            "ignored": report.ignored_overrides,
        })
        logger.info("[Step 2] 覆盖项已应用: %s", ", ".join(sorted(overrides)))

    def plan(self, manifest: Manifest, report: RunReport) -> BuildPlan:
        """步骤3: 生成构建计划"""
        plan = Planner(manifest, self.c.settings, self.c.config, system=self.c.system).build()
        report.plan = plan
        report.steps.append({
            "step": "plan", "status": "done",
            "enabled": [i.name for i in plan.enabled],
            "disabled": [i.name for i in plan.disabled],
            "gated": plan.gated,
            "install_prefix": str(plan.install_prefix),
        })
        logger.info("[Step 3] 安装根目录: %s", plan.install_prefix)
        return plan

    def cleanup(self, plan: BuildPlan, report: RunReport) -> None:
        """步骤4: 清理关闭依赖，以及旧默认根目录下启用依赖的空子目录"""
        if report.request.dry_run:
            report.steps.append({"step": "cleanup", "status": "skipped", "detail": "dry-run"})
            return
        for item in plan.disabled:
            removed = self.c.lifecycle.clean(item)
            if removed:
                report.cleaned[item.name] = removed
        for root in plan.stale_default_roots():
            for item in plan.enabled:
                stale = root / item.spec.install_dirname
                if remove_dir_if_empty(stale):
                    report.removed_default_dirs.append(stale)
        report.steps.append({
            "step": "cleanup", "status": "done",
            "cleaned": sorted(report.cleaned),
        })
        logger.info("[Step 4] 清理完成: %s", sorted(report.cleaned) or "无")

    def execute(self, plan: BuildPlan, report: RunReport) -> None:
        """步骤5: 执行启用依赖的生命周期"""
        if report.request.dry_run or not plan.enabled:
            detail = "dry-run" if report.request.dry_run else "没有启用的依赖"
            report.steps.append({"step": "execute", "status": "skipped", "detail": detail})
            return
        workers = report.request.parallel or self.c.config.max_workers
        scheduler = DagScheduler(max_workers=workers)
        runner = functools.partial(self.c.lifecycle.run, plan)
        report.results = scheduler.run(plan, runner)
        statuses = {r.name: r.status.value for r in report.results}
        report.steps.append({
            "step": "execute", "status": "done" if not report.failed else "failed",
            "results": statuses,
        })
        logger.info("[Step 5] 执行完成: %s", statuses)

    def finalize(self, plan: BuildPlan, report: RunReport) -> None:
        """步骤6: 当前及上次记录的默认安装根目录为空时删除（有内容时保留）"""
        if report.request.dry_run:
            report.steps.append({"step": "finalize", "status": "skipped", "detail": "dry-run"})
            return
        for root in dict.fromkeys([plan.default_install_prefix, *plan.stale_default_roots()]):
            if remove_dir_if_empty(root):
                report.removed_default_dirs.append(root)
        report.steps.append({"step": "finalize", "status": "done"})
        logger.info("[Step 6] 收尾完成")

    def save_settings(self, report: RunReport) -> None:
        """步骤7: 写回设置存储"""
        self.c.settings.save()
        report.steps.append({"step": "save_settings", "status": "done"})
        logger.info("[Step 7] 设置已保存: %s", self.c.settings.settings_file)
