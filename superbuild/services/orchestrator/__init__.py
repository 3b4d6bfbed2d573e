"""编排器模块

拆分说明：
- models.py: 请求与报告
- steps.py: 7 个步骤实现
- orchestrator.py: 协调器
"""

from superbuild.services.orchestrator.models import RunReport, RunRequest
from superbuild.services.orchestrator.orchestrator import Orchestrator
from superbuild.services.orchestrator.steps import OrchestrationSteps

__all__ = [
    "RunRequest",
    "RunReport",
    "Orchestrator",
    "OrchestrationSteps",
]
