"""服务容器 — 统一依赖注入，消除跨服务的裸构造

同一容器内的实例共享状态（设置存储、命令执行器等）。
CLI 通过 get_container() 获取服务，测试通过显式构造注入假执行器。

依赖关系图（→ 表示依赖）:
  lifecycle → fetcher → executor
  settings  → config.settings_path
  registry  → config.manifest

用法:
    container = ServiceContainer(config=Config.from_file("configs/default.yml"))
    report = Orchestrator(container).run(RunRequest(overrides={"SUPERBUILD_ezc3d": "ON"}))

    # 注入假命令执行器（测试）
    container = ServiceContainer(config=cfg, executor=FakeExecutor())
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from superbuild.core.config import Config
    from superbuild.core.dep.fetcher import SourceFetcher
    from superbuild.core.dep.registry import ManifestRegistry
    from superbuild.core.settings import SettingsStore
    from superbuild.services.build.executor import LifecycleExecutor
    from superbuild.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)


class ServiceContainer:
    """懒加载服务容器 — 每个实例持有一组共享的服务

    接受可选 Config 与命令执行器；system 用于在测试中模拟目标平台。
    """

    def __init__(
        self,
        config: Config | None = None,
        executor: CommandExecutor | None = None,
        system: str | None = None,
    ) -> None:
        self._instances: dict[str, object] = {}
        if config is None:
            from superbuild.core.config import get_config
            config = get_config()
        self._config = config
        self._executor = executor
        self.system = system

    @property
    def config(self) -> Config:
        return self._config

    @property
    def executor(self) -> CommandExecutor:
        if self._executor is None:
            from superbuild.utils.shell import get_executor
            self._executor = get_executor()
        return self._executor

    # ---- 核心 ----

    @property
    def registry(self) -> ManifestRegistry:
        if "registry" not in self._instances:
            from superbuild.core.dep.registry import ManifestRegistry
            self._instances["registry"] = ManifestRegistry(
                self._config.manifest, system=self.system,
            )
        return self._instances["registry"]  # type: ignore[return-value]

    @property
    def settings(self) -> SettingsStore:
        if "settings" not in self._instances:
            from superbuild.core.settings import SettingsStore
            self._instances["settings"] = SettingsStore(self._config.settings_path)
        return self._instances["settings"]  # type: ignore[return-value]

    # ---- 服务层 ----

    @property
    def fetcher(self) -> SourceFetcher:
        if "fetcher" not in self._instances:
            from superbuild.core.dep.fetcher import SourceFetcher
            self._instances["fetcher"] = SourceFetcher(
                executor=self.executor,
                git_program=self._config.git_program,
                timeout=self._config.command_timeout,
            )
        return self._instances["fetcher"]  # type: ignore[return-value]

    @property
    def lifecycle(self) -> LifecycleExecutor:
        if "lifecycle" not in self._instances:
            from superbuild.services.build.executor import LifecycleExecutor
            self._instances["lifecycle"] = LifecycleExecutor(
                fetcher=self.fetcher,
                executor=self.executor,
                cmake_program=self._config.cmake_program,
                timeout=self._config.command_timeout,
            )
        return self._instances["lifecycle"]  # type: ignore[return-value]


# ---- 全局单例 ----

_global: ServiceContainer | None = None
_global_lock = threading.Lock()


def get_container() -> ServiceContainer:
    """获取全局 ServiceContainer 单例（线程安全）"""
    global _global  # noqa: PLW0603
    if _global is not None:
        return _global
    with _global_lock:
        if _global is None:
            _global = ServiceContainer()
        return _global


def set_container(container: ServiceContainer) -> None:
    """替换全局容器（CLI 在解析完选项后调用）"""
    global _global  # noqa: PLW0603
    with _global_lock:
        _global = container


def reset_container() -> None:
    """重置全局容器（仅用于测试）"""
    global _global  # noqa: PLW0603
    with _global_lock:
        _global = None
