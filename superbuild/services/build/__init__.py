"""依赖构建模块

拆分说明:
- stamps.py: 阶段检查点
- executor.py: 四阶段生命周期执行与清理
"""

from superbuild.services.build.executor import LifecycleExecutor, write_initial_cache
from superbuild.services.build.stamps import StampStore, fingerprint

__all__ = ["LifecycleExecutor", "StampStore", "fingerprint", "write_initial_cache"]
