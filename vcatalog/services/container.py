"""服务容器 - 统一依赖注入，消除各层的裸构造

同一容器内的实例共享状态（下载缓存、作用域登记表、外部资源记忆）。
CLI 应通过 get_container() 获取服务，而非直接 import 构造。

依赖关系图（→ 表示依赖）:
  resolver → cache, fetcher, policy
  fetcher  → transport
  steps    → resolver, accessor, scopes, external
  loader   → steps, scopes

用法:
    container = ServiceContainer()
    report = container.loader.load_all(requests)

    # 测试时注入内存传输层
    container = ServiceContainer(config=cfg, transport=FakeTransport())
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from vcatalog.core.accessor import ResourceAccessor
    from vcatalog.core.artifact import (
        ArtifactFetcher,
        ArtifactResolver,
        DownloadCache,
        RepositoryPolicy,
    )
    from vcatalog.core.config import Config
    from vcatalog.core.scope import ScopeRegistry
    from vcatalog.services.loader import CatalogVersionLoader, ExternalResource, LoaderSteps
    from vcatalog.utils.net import HttpTransport

logger = logging.getLogger(__name__)


class ServiceContainer:
    """懒加载服务容器 - 每个实例持有一组共享的服务"""

    def __init__(
        self,
        config: Config | None = None,
        transport: HttpTransport | None = None,
    ) -> None:
        self._instances: dict[str, object] = {}
        if config is None:
            from vcatalog.core.config import get_config
            config = get_config()
        self._config = config
        if transport is not None:
            self._instances["transport"] = transport

    @property
    def config(self) -> Config:
        return self._config

    # ---- 基础设施 ----

    @property
    def transport(self) -> HttpTransport:
        if "transport" not in self._instances:
            from vcatalog.utils.net import UrllibTransport
            self._instances["transport"] = UrllibTransport()
        return self._instances["transport"]  # type: ignore[return-value]

    @property
    def cache(self) -> DownloadCache:
        if "cache" not in self._instances:
            from vcatalog.core.artifact import DownloadCache
            self._instances["cache"] = DownloadCache(Path(self._config.cache_dir))
        return self._instances["cache"]  # type: ignore[return-value]

    @property
    def policy(self) -> RepositoryPolicy:
        if "policy" not in self._instances:
            from vcatalog.core.artifact import RepositoryPolicy
            self._instances["policy"] = RepositoryPolicy.from_config(self._config)
        return self._instances["policy"]  # type: ignore[return-value]

    @property
    def fetcher(self) -> ArtifactFetcher:
        if "fetcher" not in self._instances:
            from vcatalog.core.artifact import ArtifactFetcher
            self._instances["fetcher"] = ArtifactFetcher(
                self.transport, timeout=self._config.download_timeout,
            )
        return self._instances["fetcher"]  # type: ignore[return-value]

    # ---- 核心服务 ----

    @property
    def resolver(self) -> ArtifactResolver:
        if "resolver" not in self._instances:
            from vcatalog.core.artifact import ArtifactResolver
            self._instances["resolver"] = ArtifactResolver(
                cache=self.cache,
                fetcher=self.fetcher,
                policy=self.policy,
                augmentations=self._config.augmentations,
                local_overrides=self._config.local_overrides,
            )
        return self._instances["resolver"]  # type: ignore[return-value]

    @property
    def accessor(self) -> ResourceAccessor:
        if "accessor" not in self._instances:
            from vcatalog.core.accessor import ResourceAccessor
            self._instances["accessor"] = ResourceAccessor()
        return self._instances["accessor"]  # type: ignore[return-value]

    @property
    def scopes(self) -> ScopeRegistry:
        if "scopes" not in self._instances:
            from vcatalog.core.scope import ScopeRegistry
            self._instances["scopes"] = ScopeRegistry()
        return self._instances["scopes"]  # type: ignore[return-value]

    @property
    def external(self) -> ExternalResource | None:
        if "external" not in self._instances:
            url = self._config.external_schema_url
            if not url:
                return None
            from vcatalog.services.loader import ExternalResource
            self._instances["external"] = ExternalResource(
                url, self.transport, timeout=self._config.download_timeout,
            )
        return self._instances["external"]  # type: ignore[return-value]

    # ---- 编排 ----

    @property
    def steps(self) -> LoaderSteps:
        if "steps" not in self._instances:
            from vcatalog.services.loader import LoaderSteps
            cfg = self._config
            self._instances["steps"] = LoaderSteps(
                self.resolver, self.accessor, self.scopes,
                kamelets_version=cfg.kamelets_version,
                crds_version=cfg.crds_version,
                crd_files=cfg.crd_files,
                local_resources_dir=cfg.local_resources_dir,
                external=self.external,
            )
        return self._instances["steps"]  # type: ignore[return-value]

    @property
    def loader(self) -> CatalogVersionLoader:
        if "loader" not in self._instances:
            from vcatalog.services.loader import CatalogVersionLoader
            self._instances["loader"] = CatalogVersionLoader(
                self.steps, self.scopes, max_workers=self._config.max_workers,
            )
        return self._instances["loader"]  # type: ignore[return-value]


# ---- 全局单例 ----

_global: ServiceContainer | None = None
_global_lock = threading.Lock()


def get_container() -> ServiceContainer:
    """获取全局服务容器（线程安全懒初始化）"""
    global _global  # noqa: PLW0603
    if _global is not None:
        return _global
    with _global_lock:
        if _global is None:
            _global = ServiceContainer()
        return _global


def reset_container() -> None:
    """重置全局容器（配置重新加载或测试隔离时使用）"""
    global _global  # noqa: PLW0603
    with _global_lock:
        _global = None
