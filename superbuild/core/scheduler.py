"""DAG 调度器 - 按前置关系并行执行依赖的生命周期

保证:
  - 一个依赖只有在其计划内的全部前置依赖成功安装后才开始（含 fetch 阶段）
  - 某个依赖失败时，其全部下游标记为 blocked，不再启动
  - 与失败依赖无关的子图继续执行
  - 返回结果与计划顺序一致

无关依赖之间不保证先后顺序，也不需要加锁: 每个依赖只写自己名下的子目录。
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Callable

from superbuild.core.exceptions import SuperbuildError
from superbuild.core.models import DependencyResult, DepStatus
from superbuild.core.planner import BuildPlan, PlannedDependency

logger = logging.getLogger(__name__)

# 单个依赖的执行策略：接受计划项，返回执行结果
TaskRunner = Callable[[PlannedDependency], DependencyResult]


class DagScheduler:
    """可配置并行度的依赖调度器"""

    def __init__(self, max_workers: int = 1) -> None:
        self.max_workers = max(1, max_workers)

    @staticmethod
    def _blocked(item: PlannedDependency, failed: str) -> DependencyResult:
        return DependencyResult(
            name=item.name, status=DepStatus.BLOCKED,
            message=f"前置依赖 {failed} 未成功安装",
        )

    @staticmethod
    def _safe_run(runner: TaskRunner, item: PlannedDependency) -> DependencyResult:
        start = time.monotonic()
        try:
            return runner(item)
        except (SuperbuildError, OSError) as e:
            logger.exception("依赖 %s 执行异常", item.name)
            return DependencyResult(
                name=item.name, status=DepStatus.FAILED,
                duration=time.monotonic() - start, message=str(e),
            )

    def _state(
        self, item: PlannedDependency, results: dict[str, DependencyResult],
    ) -> str:
        """ready / waiting / 失败的前置依赖名"""
        for pre in item.prerequisites:
            if pre not in results:
                return "waiting"
            if not results[pre].success:
                return pre
        return "ready"

    def run(self, plan: BuildPlan, runner: TaskRunner) -> list[DependencyResult]:
        """执行计划内全部启用的依赖"""
        if self.max_workers == 1:
            return self._run_sequential(plan, runner)
        return self._run_parallel(plan, runner)

    def _run_sequential(self, plan: BuildPlan, runner: TaskRunner) -> list[DependencyResult]:
        results: dict[str, DependencyResult] = {}
        for item in plan.enabled:
            state = self._state(item, results)
            if state == "ready":
                logger.info("开始: %s", item.name)
                results[item.name] = self._safe_run(runner, item)
            else:
                # enabled 已是拓扑序，这里不会出现 waiting
                results[item.name] = self._blocked(item, state)
            self._log_done(results[item.name])
        return [results[i.name] for i in plan.enabled]

    def _run_parallel(self, plan: BuildPlan, runner: TaskRunner) -> list[DependencyResult]:
        results: dict[str, DependencyResult] = {}
        running: dict[Future[DependencyResult], PlannedDependency] = {}

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            while True:
                submitted = {i.name for i in running.values()}
                changed = True
                while changed:
                    changed = False
                    for item in plan.enabled:
                        if item.name in results or item.name in submitted:
                            continue
                        state = self._state(item, results)
                        if state == "ready":
                            logger.info("开始: %s", item.name)
                            running[pool.submit(self._safe_run, runner, item)] = item
                            submitted.add(item.name)
                        elif state != "waiting":
                            results[item.name] = self._blocked(item, state)
                            self._log_done(results[item.name])
                            changed = True

                if not running:
                    break
                done, _ = wait(list(running), return_when=FIRST_COMPLETED)
                for future in done:
                    item = running.pop(future)
                    results[item.name] = future.result()
                    self._log_done(results[item.name])

        return [results[i.name] for i in plan.enabled]

    @staticmethod
    def _log_done(result: DependencyResult) -> None:
        if result.success:
            logger.info("完成: %s -> %s (%.1f秒)", result.name, result.status.value, result.duration)
        else:
            logger.error("未完成: %s -> %s: %s", result.name, result.status.value, result.message)
