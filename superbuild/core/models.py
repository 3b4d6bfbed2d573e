"""运行结果数据模型

调度器、生命周期执行器和编排器之间传递的结果对象集中定义在这里。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class DepStatus(str, Enum):
    """单个依赖本次运行的最终状态"""

    INSTALLED = "installed"
    UP_TO_DATE = "up_to_date"
    FAILED = "failed"
    BLOCKED = "blocked"       # 前置依赖失败，未开始
    DISABLED = "disabled"     # 开关关闭，已清理
    GATED = "gated"           # 所属特性组未开启

    @property
    def ok(self) -> bool:
        return self in (DepStatus.INSTALLED, DepStatus.UP_TO_DATE)


@dataclass
class PhaseResult:
    """单个生命周期阶段的执行结果"""

    phase: str
    status: str  # "done", "skipped", "up_to_date", "failed"
    duration: float = 0.0
    returncode: int | None = None
    output: str = ""


@dataclass
class DependencyResult:
    """单个依赖的执行结果"""

    name: str
    status: DepStatus
    duration: float = 0.0
    message: str = ""
    failed_phase: str = ""
    phases: list[PhaseResult] = field(default_factory=list)
    started_at: float = 0.0
    finished_at: float = 0.0

    @property
    def success(self) -> bool:
        return self.status.ok
