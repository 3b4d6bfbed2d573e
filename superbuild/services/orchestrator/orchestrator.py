"""superbuild 编排器 - 协调 7 步流水线

职责：
- 协调步骤执行顺序
- 保证设置存储在 finally 中写回
- 构建执行报告
"""

from __future__ import annotations

from superbuild.services.container import ServiceContainer
from superbuild.services.orchestrator.models import RunReport, RunRequest
from superbuild.services.orchestrator.steps import OrchestrationSteps


class Orchestrator:
    """依赖超级构建编排器"""

    def __init__(self, container: ServiceContainer | None = None) -> None:
        self.c = container or ServiceContainer()
        self.steps = OrchestrationSteps(self.c)

    def run(self, request: RunRequest | None = None) -> RunReport:
        """执行一次完整的配置 + 构建流程"""
        report = RunReport(request=request or RunRequest())
        manifest = self.steps.load_manifest(report)
        try:
            self.steps.apply_settings(manifest, report)
            plan = self.steps.plan(manifest, report)
            self.steps.cleanup(plan, report)
            self.steps.execute(plan, report)
            self.steps.finalize(plan, report)
        finally:
            self.steps.save_settings(report)
        return report
