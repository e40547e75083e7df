"""制品解析模块

拆分说明:
- models.py: 坐标 / 仓库 / 已解析制品数据模型
- policy.py: 仓库选择策略
- cache.py: 进程级下载缓存（单键单下载）
- fetcher.py: 多仓库有序回退下载
- descriptor.py: 依赖描述文件解析
- resolver.py: 单个 / 传递依赖解析
"""

from vcatalog.core.artifact.cache import DownloadCache
from vcatalog.core.artifact.fetcher import ArtifactFetcher
from vcatalog.core.artifact.models import (
    ArtifactCoordinate,
    RepositoryEndpoint,
    ResolvedArtifact,
)
from vcatalog.core.artifact.policy import RepositoryPolicy
from vcatalog.core.artifact.resolver import ArtifactResolver

__all__ = [
    "ArtifactCoordinate",
    "RepositoryEndpoint",
    "ResolvedArtifact",
    "RepositoryPolicy",
    "DownloadCache",
    "ArtifactFetcher",
    "ArtifactResolver",
]
