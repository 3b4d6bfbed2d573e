"""阶段检查点（stamp）管理

每个成功完成的阶段在 <binary>/<name>/stamp/<name>-<phase> 写入该阶段输入的指纹。
再次运行时:
  - 指纹一致 → 该阶段跳过
  - 指纹不一致或缺失 → 从该阶段起全部重跑
  - 阶段开始前先删除它及之后的 stamp，失败不会留下过期的检查点
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Any

from superbuild.core.dep.models import PHASES

logger = logging.getLogger(__name__)


def fingerprint(inputs: Any) -> str:
    """阶段输入的稳定指纹"""
    payload = json.dumps(inputs, sort_keys=True, default=str, ensure_ascii=False)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class StampStore:
    """单个依赖的阶段检查点"""

    def __init__(self, stamp_dir: Path, name: str) -> None:
        self.stamp_dir = stamp_dir
        self.name = name

    def path(self, phase: str) -> Path:
        return self.stamp_dir / f"{self.name}-{phase}"

    def is_current(self, phase: str, fp: str) -> bool:
        p = self.path(phase)
        if not p.is_file():
            return False
        return p.read_text(encoding="utf-8").strip() == fp

    def mark(self, phase: str, fp: str) -> None:
        self.stamp_dir.mkdir(parents=True, exist_ok=True)
        self.path(phase).write_text(fp + "\n", encoding="utf-8")

    def invalidate_from(self, phase: str) -> None:
        """删除 phase 及其之后所有阶段的 stamp"""
        for later in PHASES[PHASES.index(phase):]:
            self.path(later).unlink(missing_ok=True)

    def completed(self) -> list[str]:
        return [p for p in PHASES if self.path(p).is_file()]
