"""编排器数据模型

数据类：
- RunRequest: 一次调用的输入（-D 覆盖、并行度、是否只出计划）
- RunReport: 一次调用的执行报告
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from superbuild.core.models import DependencyResult, DepStatus
from superbuild.core.planner import BuildPlan


@dataclass
class RunRequest:
    """编排请求"""

    overrides: dict[str, str] = field(default_factory=dict)
    parallel: int = 0           # 0 表示使用配置中的 max_workers
    dry_run: bool = False


@dataclass
class RunReport:
    """编排执行报告"""

    request: RunRequest
    plan: BuildPlan | None = None
    results: list[DependencyResult] = field(default_factory=list)
    cleaned: dict[str, list[Path]] = field(default_factory=dict)
    removed_default_dirs: list[Path] = field(default_factory=list)
    ignored_overrides: list[str] = field(default_factory=list)
    steps: list[dict[str, Any]] = field(default_factory=list)

    @property
    def failed(self) -> list[DependencyResult]:
        return [r for r in self.results if not r.success]

    @property
    def success(self) -> bool:
        return self.plan is not None and not self.failed

    def result(self, name: str) -> DependencyResult | None:
        for r in self.results:
            if r.name == name:
                return r
        return None

    def status_of(self, name: str) -> DepStatus | None:
        """依赖在本次运行中的状态（包括关闭与未参与的依赖）"""
        r = self.result(name)
        if r is not None:
            return r.status
        if self.plan is None:
            return None
        if any(d.name == name for d in self.plan.disabled):
            return DepStatus.DISABLED
        if name in self.plan.gated:
            return DepStatus.GATED
        return None
