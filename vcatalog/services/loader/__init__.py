"""目录版本加载模块

拆分说明：
- models.py: 请求 / 结果 / 运行时配置数据模型
- steps.py: 单请求状态机的各个步骤
- loader.py: 协调器（单请求顺序执行 + 批量并行）
"""

from vcatalog.services.loader.loader import CatalogVersionLoader
from vcatalog.services.loader.models import (
    BatchReport,
    CatalogRequest,
    CatalogVersion,
    LoaderStage,
    Provenance,
    RequestOutcome,
    RuntimeKind,
    load_worklist,
)
from vcatalog.services.loader.steps import ExternalResource, LoaderSteps

__all__ = [
    "BatchReport",
    "CatalogRequest",
    "CatalogVersion",
    "CatalogVersionLoader",
    "ExternalResource",
    "LoaderStage",
    "LoaderSteps",
    "Provenance",
    "RequestOutcome",
    "RuntimeKind",
    "load_worklist",
]
