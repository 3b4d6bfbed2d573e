"""依赖声明模块

拆分说明:
- models.py: 声明数据模型
- registry.py: 清单加载与单条校验
- resolver.py: 依赖图校验与拓扑排序
- fetcher.py: 源码拉取
"""

from superbuild.core.dep.fetcher import SourceFetcher
from superbuild.core.dep.models import DependencySpec, FeatureSwitch, SourceLocator, Step
from superbuild.core.dep.registry import Manifest, ManifestRegistry
from superbuild.core.dep.resolver import DependencyResolver

__all__ = [
    "DependencySpec",
    "FeatureSwitch",
    "SourceLocator",
    "Step",
    "Manifest",
    "ManifestRegistry",
    "DependencyResolver",
    "SourceFetcher",
]
