"""Shell 命令执行工具 — 统一子进程调用

所有外部工具（cmake / git / make / autoreconf ...）都通过 CommandExecutor
协议调用，方便测试替换为记录命令的假执行器，无需 patch subprocess。
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass
from typing import Protocol

from superbuild.core.exceptions import ExecutionError

logger = logging.getLogger(__name__)

# 失败时附带的输出尾部长度
OUTPUT_TAIL = 2000


# =========================================================================
# 命令执行结果
# =========================================================================

@dataclass
class CommandResult:
    """命令执行结果（与 subprocess 解耦）"""

    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.returncode == 0

    def tail(self, limit: int = OUTPUT_TAIL) -> str:
        """合并 stdout/stderr 并截取尾部，用于错误诊断"""
        text = (self.stdout or "") + (self.stderr or "")
        return text[-limit:]


# =========================================================================
# 命令执行器协议
# =========================================================================

class CommandExecutor(Protocol):
    """命令执行器协议 — 抽象子进程调用"""

    def execute(
        self,
        cmd: str | list[str],
        *,
        cwd: str = ".",
        env: dict[str, str] | None = None,
        timeout: int | None = None,
    ) -> CommandResult:
        """执行命令并返回结果"""
        ...


# =========================================================================
# 默认实现: 本地执行器
# =========================================================================

class LocalExecutor:
    """本地子进程执行器（默认实现，不经过 shell）"""

    def execute(
        self,
        cmd: str | list[str],
        *,
        cwd: str = ".",
        env: dict[str, str] | None = None,
        timeout: int | None = None,
    ) -> CommandResult:
        args = shlex.split(cmd) if isinstance(cmd, str) else cmd
        try:
            r = subprocess.run(
                args, capture_output=True, text=True,
                cwd=cwd, env=env, check=False, timeout=timeout,
            )
        except FileNotFoundError as e:
            # 工具不存在按 127 处理，与 shell 行为一致
            return CommandResult(returncode=127, stdout="", stderr=str(e))
        return CommandResult(
            returncode=r.returncode,
            stdout=r.stdout,
            stderr=r.stderr,
        )


# =========================================================================
# 全局默认执行器（可替换）
# =========================================================================

_default_executor: CommandExecutor = LocalExecutor()


def get_executor() -> CommandExecutor:
    """获取全局默认命令执行器"""
    return _default_executor


def set_executor(executor: CommandExecutor) -> None:
    """替换全局默认命令执行器（用于测试）"""
    global _default_executor  # noqa: PLW0603
    _default_executor = executor


def format_cmd(cmd: str | list[str]) -> str:
    """命令转为可读字符串，用于日志"""
    return cmd if isinstance(cmd, str) else shlex.join(cmd)


def run_cmd(
    cmd: str | list[str], *, cwd: str = ".",
    env: dict[str, str] | None = None,
    label: str = "cmd",
    timeout: int | None = None,
    executor: CommandExecutor | None = None,
) -> CommandResult:
    """执行命令，失败抛 ExecutionError

    Args:
        cmd: 命令字符串或参数列表
        cwd: 工作目录
        env: 环境变量（不传则继承当前进程）
        label: 日志标签
        timeout: 超时秒数
        executor: 指定执行器（默认使用全局执行器）
    """
    logger.info("  %s: %s (cwd=%s)", label, format_cmd(cmd), cwd)
    runner = executor or get_executor()
    try:
        r = runner.execute(cmd, cwd=cwd, env=env, timeout=timeout)
    except subprocess.TimeoutExpired as e:
        raise ExecutionError(f"{label}超时（{timeout}秒）") from e
    if not r.success:
        raise ExecutionError(f"{label}失败 (rc={r.returncode}): {r.tail(500)}")
    return r
