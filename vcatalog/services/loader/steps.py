"""加载步骤实现 - 单请求状态机

步骤顺序：
1. resolve_catalog    - 解析运行时目录制品（含传递依赖）
2. resolve_schema     - 解析 schema 制品
3. resolve_connectors - 解析连接器定义制品
4. resolve_crds       - 解析 CRD 制品
   → 全部成员就绪后封存作用域，再按同样顺序读取资源 (extract_*)
5. merge_local        - 并入本地静态资源与外部固定 schema
6. finish             - 生成溯源记录
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from vcatalog.core.accessor import LoadedResourceBundle, ResourceAccessor
from vcatalog.core.artifact.models import ArtifactCoordinate, ResolvedArtifact
from vcatalog.core.artifact.resolver import ArtifactResolver
from vcatalog.core.exceptions import ExternalResourceError, ResourceNotFound, ValidationError
from vcatalog.core.scope import IsolationScope, ScopeRegistry
from vcatalog.services.loader.models import (
    CATALOG_CATEGORIES,
    CONNECTORS_ARTIFACT,
    CONNECTORS_FOLDER,
    CONNECTORS_SUFFIX,
    CORE_CATALOG_KEY,
    CRDS_ARTIFACT,
    CRDS_FOLDER,
    LOCAL_COORDINATE,
    RUNTIME_PROFILES,
    SCHEMA_ARTIFACT,
    SCHEMA_RESOURCE,
    CatalogRequest,
    CatalogVersion,
    LoaderStage,
    Provenance,
)
from vcatalog.utils.net import HttpTransport, validate_url_scheme

logger = logging.getLogger(__name__)


class ExternalResource:
    """固定 URL 的外部资源，每次运行只拉取一次（成功或失败都记忆）"""

    def __init__(self, url: str, transport: HttpTransport, timeout: float = 60) -> None:
        self.url = url
        self.transport = transport
        self.timeout = timeout
        self._lock = threading.Lock()
        self._fetched = False
        self._data: bytes | None = None
        self._reason = ""

    @property
    def name(self) -> str:
        return PurePosixPath(self.url.split("?", 1)[0]).name or "external.json"

    def get(self) -> bytes:
        with self._lock:
            if not self._fetched:
                try:
                    validate_url_scheme(self.url, context="external schema")
                    logger.info("拉取外部资源: %s", self.url)
                    self._data = self.transport.fetch(self.url, timeout=self.timeout)
                except (OSError, ValidationError) as e:
                    self._reason = str(e)
                    logger.error("外部资源拉取失败: %s - %s", self.url, e)
                self._fetched = True
        if self._data is None:
            raise ExternalResourceError(self.url, self._reason)
        return self._data


@dataclass
class LoadContext:
    """单个请求的加载上下文"""

    request: CatalogRequest
    scope: IsolationScope
    stage: LoaderStage = LoaderStage.START
    stages: list[str] = field(default_factory=list)
    catalog: ResolvedArtifact | None = None
    schema_version: str = ""
    bundle: LoadedResourceBundle = field(default_factory=LoadedResourceBundle)

    def advance(self, stage: LoaderStage) -> None:
        self.stage = stage
        self.stages.append(stage.value)


class LoaderSteps:
    """加载步骤集合"""

    def __init__(
        self,
        resolver: ArtifactResolver,
        accessor: ResourceAccessor,
        scopes: ScopeRegistry,
        *,
        kamelets_version: str,
        crds_version: str,
        crd_files: list[str],
        local_resources_dir: str = "",
        external: ExternalResource | None = None,
    ) -> None:
        self.resolver = resolver
        self.accessor = accessor
        self.scopes = scopes
        self.kamelets_version = kamelets_version
        self.crds_version = crds_version
        self.crd_files = list(crd_files)
        self.local_resources_dir = local_resources_dir
        self.external = external

    # ------------------------------------------------------------------
    # 解析阶段
    # ------------------------------------------------------------------

    def resolve_catalog(self, ctx: LoadContext) -> None:
        """步骤1: 按运行时解析目录制品及其传递依赖"""
        req = ctx.request
        coord = RUNTIME_PROFILES[req.runtime].catalog_coordinate(req.version)
        artifacts = self.resolver.resolve_transitive(coord)
        # 依赖先加入、根制品最后加入，冲突时根制品生效
        ctx.scope.add_members(tuple(reversed(artifacts)))
        ctx.catalog = artifacts[0]

        core = next(
            (c for c in ctx.scope.coordinates if c.key == CORE_CATALOG_KEY), None,
        )
        ctx.schema_version = core.version if core else req.version
        ctx.advance(LoaderStage.CATALOG_RESOLVED)
        logger.info(
            "[Step 1] 目录已解析: %s (%d 个依赖, schema 版本 %s)",
            coord, len(artifacts) - 1, ctx.schema_version,
        )

    def resolve_schema(self, ctx: LoadContext) -> None:
        """步骤2: 解析 schema 定义制品"""
        coord = ArtifactCoordinate(*SCHEMA_ARTIFACT, ctx.schema_version)
        ctx.scope.add_member(self.resolver.resolve(coord))
        ctx.advance(LoaderStage.SCHEMA_RESOLVED)
        logger.info("[Step 2] schema 制品已解析: %s", coord)

    def resolve_connectors(self, ctx: LoadContext) -> None:
        """步骤3: 解析连接器定义制品"""
        version = ctx.request.kamelets_version or self.kamelets_version
        coord = ArtifactCoordinate(*CONNECTORS_ARTIFACT, version)
        ctx.scope.add_member(self.resolver.resolve(coord))
        ctx.advance(LoaderStage.CONNECTORS_RESOLVED)
        logger.info("[Step 3] 连接器制品已解析: %s", coord)

    def resolve_crds(self, ctx: LoadContext) -> None:
        """步骤4: 解析 CRD 制品"""
        version = ctx.request.crds_version or self.crds_version
        coord = ArtifactCoordinate(*CRDS_ARTIFACT, version)
        ctx.scope.add_member(self.resolver.resolve(coord))
        ctx.advance(LoaderStage.CRDS_RESOLVED)
        logger.info("[Step 4] CRD 制品已解析: %s", coord)

    # ------------------------------------------------------------------
    # 读取阶段（作用域已封存）
    # ------------------------------------------------------------------

    def extract_catalog(self, ctx: LoadContext) -> None:
        prefix = RUNTIME_PROFILES[ctx.request.runtime].resource_prefix
        total = 0
        for category in CATALOG_CATEGORIES:
            sub = self.accessor.read_many(ctx.scope, f"{prefix}{category}/", ".json")
            ctx.bundle.merge(sub, prefix=f"catalog/{category}/")
            total += len(sub)
        if total == 0:
            raise ResourceNotFound(ctx.scope.scope_id, f"{prefix}*.json")

    def extract_schema(self, ctx: LoadContext) -> None:
        data = self.accessor.read_one(ctx.scope, SCHEMA_RESOURCE)
        ctx.bundle.put(SCHEMA_RESOURCE, data, origin="schema")

    def extract_connectors(self, ctx: LoadContext) -> None:
        sub = self.accessor.read_many(ctx.scope, CONNECTORS_FOLDER, CONNECTORS_SUFFIX)
        ctx.bundle.merge(sub, prefix=CONNECTORS_FOLDER)

    def extract_crds(self, ctx: LoadContext) -> None:
        for name in self.crd_files:
            data = self.accessor.read_optional(ctx.scope, f"{CRDS_FOLDER}{name}")
            if data is None:
                msg = f"CRD 不存在，已跳过: {name} ({ctx.scope.scope_id})"
                ctx.bundle.warnings.append(msg)
                logger.warning(msg)
                continue
            ctx.bundle.put(f"crds/{name}", data, origin="crds")

    # ------------------------------------------------------------------
    # 本地资源与收尾
    # ------------------------------------------------------------------

    def merge_local(self, ctx: LoadContext) -> None:
        """步骤5: 并入本地静态资源（独立作用域）和外部固定 schema"""
        local_dir = Path(self.local_resources_dir) if self.local_resources_dir else None
        if local_dir is not None and local_dir.is_dir():
            scope = self.scopes.new_scope(f"{ctx.scope.scope_id}/local")
            try:
                scope.add_member(ResolvedArtifact(LOCAL_COORDINATE, local_dir))
                scope.seal()
                sub = self.accessor.read_many(scope, "", "", key_fn=lambda p: p)
                ctx.bundle.merge(sub, prefix="local/")
            finally:
                self.scopes.release(scope)
        elif local_dir is not None:
            logger.warning("本地资源目录不存在，已跳过: %s", local_dir)

        if self.external is not None:
            ctx.bundle.put(
                f"external/{self.external.name}", self.external.get(), origin=self.external.url,
            )
        logger.info("[Step 5] 本地资源已合并: 共 %d 个资源", len(ctx.bundle))

    def finish(self, ctx: LoadContext) -> CatalogVersion:
        """步骤6: 生成溯源记录并返回结果"""
        ctx.advance(LoaderStage.DONE)
        provenance = Provenance(
            scope_id=ctx.scope.scope_id,
            coordinates=sorted(str(c) for c in ctx.scope.coordinates),
            stages=list(ctx.stages),
        )
        logger.info(
            "[Step 6] 完成: %s (%d 个资源, %d 个坐标, %d 条告警)",
            ctx.request.request_id, len(ctx.bundle),
            len(provenance.coordinates), len(ctx.bundle.warnings),
        )
        return CatalogVersion(request=ctx.request, bundle=ctx.bundle, provenance=provenance)
