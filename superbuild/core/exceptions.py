"""统一异常体系

所有业务异常继承 SuperbuildError，按错误来源分类:
  - 声明校验错误（ValidationError / CycleError）: 计划构建阶段致命，不执行任何步骤
  - 拉取错误（FetchError）: 该依赖及其下游停止，无关子图继续
  - 阶段执行错误（PhaseError）: 同上
CLI 层据此输出单条终端诊断信息。
"""

from __future__ import annotations


class SuperbuildError(Exception):
    """superbuild 基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(SuperbuildError):
    """配置文件缺失或内容无效"""

    code = "CONFIG_ERROR"


class ValidationError(SuperbuildError):
    """依赖声明或输入数据校验失败"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.details = details or []


class CycleError(ValidationError):
    """依赖前置关系存在环"""

    code = "DEPENDENCY_CYCLE"

    def __init__(self, cycle: list[str]) -> None:
        super().__init__(f"依赖关系存在环: {' -> '.join(cycle)}", details=cycle)
        self.cycle = cycle


class DependencyError(SuperbuildError):
    """依赖查找或清理失败"""

    code = "DEPENDENCY_ERROR"


class FetchError(DependencyError):
    """源码归档下载、解压或仓库检出失败"""

    code = "FETCH_ERROR"


class ExecutionError(SuperbuildError):
    """外部命令执行失败"""

    code = "EXECUTION_ERROR"


class PhaseError(SuperbuildError):
    """某个依赖的某个生命周期阶段失败"""

    code = "PHASE_ERROR"

    def __init__(self, name: str, phase: str, message: str, returncode: int | None = None) -> None:
        super().__init__(f"依赖 {name} 的 {phase} 阶段失败: {message}")
        self.name = name
        self.phase = phase
        self.returncode = returncode
