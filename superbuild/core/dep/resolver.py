"""依赖关系解析

职责:
- 整体校验清单: 名称唯一、前置依赖存在、特性开关存在、无环
- 按前置关系做稳定拓扑排序（同层保持声明顺序）
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from superbuild.core.dep.models import DependencySpec
from superbuild.core.exceptions import CycleError, ValidationError

logger = logging.getLogger(__name__)


class DependencyResolver:
    """依赖图解析器 - 只做图计算，不触发任何 IO"""

    def __init__(self, specs: list[DependencySpec], features: Iterable[str] = ()) -> None:
        self.specs = specs
        self.features = set(features)
        self._by_name: dict[str, DependencySpec] = {}
        for spec in specs:
            self._by_name.setdefault(spec.name, spec)

    def validate(self) -> None:
        """校验整张依赖图，收集全部问题后一次性抛出"""
        problems: list[str] = []
        seen: set[str] = set()
        for spec in self.specs:
            if spec.name in seen:
                problems.append(f"依赖名称重复: {spec.name}")
            seen.add(spec.name)
            for pre in spec.prerequisites:
                if pre not in self._by_name:
                    problems.append(f"依赖 '{spec.name}' 的前置依赖不存在: {pre}")
            for feat in (*spec.gate, *spec.condition):
                if feat not in self.features:
                    problems.append(f"依赖 '{spec.name}' 引用了未声明的特性开关: {feat}")
        if problems:
            raise ValidationError(f"依赖清单校验失败 ({len(problems)} 项)", details=problems)

        cycle = self.find_cycle()
        if cycle:
            raise CycleError(cycle)

    def find_cycle(self) -> list[str]:
        """DFS 查找一条环，返回环上的节点序列（首尾相同），无环返回空列表"""
        state: dict[str, int] = {}  # 1 = 访问中, 2 = 已完成
        stack: list[str] = []

        def visit(name: str) -> list[str]:
            state[name] = 1
            stack.append(name)
            for pre in self._by_name[name].prerequisites:
                if pre not in self._by_name:
                    continue
                if state.get(pre) == 1:
                    return stack[stack.index(pre):] + [pre]
                if pre not in state:
                    found = visit(pre)
                    if found:
                        return found
            stack.pop()
            state[name] = 2
            return []

        for spec in self.specs:
            if spec.name not in state:
                found = visit(spec.name)
                if found:
                    return found
        return []

    def order(self, names: Iterable[str] | None = None) -> list[str]:
        """对给定子集做拓扑排序，子集外的前置依赖视为已满足"""
        wanted = [s.name for s in self.specs] if names is None else list(names)
        subset = set(wanted)
        position = {s.name: i for i, s in enumerate(self.specs)}
        remaining = sorted(subset, key=lambda n: position.get(n, len(position)))
        done: set[str] = set()
        ordered: list[str] = []

        while remaining:
            progressed = False
            for name in list(remaining):
                pres = [p for p in self._by_name[name].prerequisites if p in subset]
                if all(p in done for p in pres):
                    ordered.append(name)
                    done.add(name)
                    remaining.remove(name)
                    progressed = True
                    break
            if not progressed:
                raise CycleError(remaining + remaining[:1])
        return ordered

    def prerequisites_within(self, name: str, subset: Iterable[str]) -> list[str]:
        """某依赖在给定子集内的直接前置依赖"""
        allowed = set(subset)
        return [p for p in self._by_name[name].prerequisites if p in allowed]
