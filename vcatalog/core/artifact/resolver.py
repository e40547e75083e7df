"""制品解析器

职责:
- resolve(): 坐标 → 本地制品文件（本地覆盖 → 缓存 → 远程仓库）
- resolve_transitive(): 沿依赖描述文件 + 配置的补充清单做广度优先遍历
- 缓存文件形态校验失败时强制重新下载一次，仍失败才判定为无法解析

解析只写下载缓存，不接触任何隔离作用域。
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import replace
from pathlib import Path

from vcatalog.core.artifact.cache import CacheKey, DownloadCache, verify_shape
from vcatalog.core.artifact.descriptor import Descriptor, parse_descriptor
from vcatalog.core.artifact.fetcher import ArtifactFetcher
from vcatalog.core.artifact.models import (
    ARCHIVE_EXTENSION,
    DESCRIPTOR_EXTENSION,
    ArtifactCoordinate,
    ResolvedArtifact,
)
from vcatalog.core.artifact.policy import RepositoryPolicy
from vcatalog.core.exceptions import (
    CacheCorruption,
    CatalogError,
    TransitiveResolutionFailure,
    UnresolvableArtifact,
)

logger = logging.getLogger(__name__)


class ArtifactResolver:
    """制品解析器 - 缓存优先 + 远程有序回退"""

    def __init__(
        self,
        cache: DownloadCache,
        fetcher: ArtifactFetcher,
        policy: RepositoryPolicy,
        augmentations: dict[str, list[str]] | None = None,
        local_overrides: dict[str, str] | None = None,
    ) -> None:
        self.cache = cache
        self.fetcher = fetcher
        self.policy = policy
        self.augmentations = dict(augmentations or {})
        self.local_overrides = {
            ArtifactCoordinate.parse(k): Path(v)
            for k, v in (local_overrides or {}).items()
        }
        self._guard = threading.Lock()
        self._key_locks: dict[CacheKey, threading.Lock] = {}

    # ------------------------------------------------------------------
    # 单个制品
    # ------------------------------------------------------------------

    def resolve(self, coordinate: ArtifactCoordinate) -> ResolvedArtifact:
        """解析单个制品，返回的 transitive_closure 为空"""
        override = self.local_overrides.get(coordinate)
        if override is not None:
            if not override.exists():
                raise UnresolvableArtifact(
                    coordinate, ["local"], reason=f"本地覆盖路径不存在: {override}",
                )
            logger.info("使用本地制品: %s -> %s", coordinate, override)
            return ResolvedArtifact(coordinate=coordinate, local_path=override)

        path = self._ensure(coordinate, ARCHIVE_EXTENSION)
        return ResolvedArtifact(coordinate=coordinate, local_path=path)

    def descriptor(self, coordinate: ArtifactCoordinate) -> Descriptor:
        """读取制品的依赖描述文件"""
        override = self.local_overrides.get(coordinate)
        if override is not None:
            pom = override / "pom.xml" if override.is_dir() else override.with_suffix(".pom")
            if not pom.is_file():
                return Descriptor(coordinate=coordinate)
            return parse_descriptor(pom.read_bytes(), source=str(pom))

        path = self._ensure(coordinate, DESCRIPTOR_EXTENSION)
        return parse_descriptor(path.read_bytes(), source=str(path))

    def dependencies_of(self, coordinate: ArtifactCoordinate) -> list[ArtifactCoordinate]:
        """描述文件声明的依赖 + 该坐标的补充清单"""
        deps = list(self.descriptor(coordinate).dependencies)
        for template in self.augmentations.get(coordinate.key, []):
            extra = ArtifactCoordinate.parse(template.replace("{version}", coordinate.version))
            if extra not in deps:
                deps.append(extra)
        return deps

    def _key_lock(self, key: CacheKey) -> threading.Lock:
        with self._guard:
            return self._key_locks.setdefault(key, threading.Lock())

    def _ensure(self, coordinate: ArtifactCoordinate, extension: str) -> Path:
        """保证 (坐标, 扩展名) 的文件在缓存中且通过形态校验"""
        endpoints = self.policy.endpoints_for(coordinate)

        def fetch(dest: Path) -> None:
            logger.info(
                "缓存未命中，远程拉取: %s (%s) 仓库: %s",
                coordinate, extension, [str(e) for e in endpoints],
            )
            self.fetcher.fetch_to(coordinate, extension, endpoints, dest)
            self.cache.mark_verified(dest)

        path = self.cache.get_or_fetch(coordinate, extension, fetch)
        if self.cache.is_verified(path):
            return path

        # 上次进程留下的缓存文件，首次使用前校验一次
        key = (coordinate, extension)
        try:
            with self._key_lock(key):
                if self.cache.is_verified(path):
                    return path
                try:
                    verify_shape(path, extension)
                except CacheCorruption as e:
                    logger.warning("缓存文件校验失败，强制重新下载: %s", e)
                    self.cache.evict(coordinate, extension)
                    path = self.cache.get_or_fetch(coordinate, extension, fetch)
                    try:
                        verify_shape(path, extension)
                    except CacheCorruption as e2:
                        raise UnresolvableArtifact(
                            coordinate, [str(ep) for ep in endpoints], reason=str(e2),
                        ) from e2
                self.cache.mark_verified(path)
        finally:
            # 校验结果已记入缓存，锁只在校验期间保留
            with self._guard:
                self._key_locks.pop(key, None)
        return path

    # ------------------------------------------------------------------
    # 传递依赖
    # ------------------------------------------------------------------

    def resolve_transitive(
        self, coordinate: ArtifactCoordinate,
    ) -> tuple[ResolvedArtifact, ...]:
        """解析制品及其完整传递依赖集合

        返回顺序: 根制品在前，其余按广度优先。菱形依赖只拉取一次；
        同一 group:name 以最近的声明为准。任何依赖失败都使整个调用失败，
        不返回部分结果。
        """
        root = self.resolve(coordinate)
        resolved: dict[ArtifactCoordinate, ResolvedArtifact] = {coordinate: root}
        order: list[ArtifactCoordinate] = [coordinate]
        nearest: dict[str, ArtifactCoordinate] = {coordinate.key: coordinate}
        queue = deque([coordinate])

        while queue:
            current = queue.popleft()
            try:
                deps = self.dependencies_of(current)
            except CatalogError as e:
                if current == coordinate:
                    raise
                raise TransitiveResolutionFailure(coordinate, current, e) from e

            for dep in deps:
                if dep in resolved:
                    continue
                chosen = nearest.get(dep.key)
                if chosen is not None:
                    logger.debug("依赖版本冲突，保留最近声明: %s (忽略 %s)", chosen, dep.version)
                    continue
                try:
                    resolved[dep] = self.resolve(dep)
                except CatalogError as e:
                    logger.error("传递依赖解析失败: %s -> %s", coordinate, dep)
                    raise TransitiveResolutionFailure(coordinate, dep, e) from e
                nearest[dep.key] = dep
                order.append(dep)
                queue.append(dep)

        closure = frozenset(order[1:])
        logger.info("已解析 %s 及 %d 个传递依赖", coordinate, len(closure))
        return (
            replace(root, transitive_closure=closure),
            *(resolved[c] for c in order[1:]),
        )
