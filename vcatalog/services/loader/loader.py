"""目录版本加载器 - 协调单请求状态机与批量并行

职责：
- 单个请求: 严格顺序执行步骤 1-6，任一步骤失败即中止该请求
- 批量请求: 线程池并行，逐请求收敛成功 / 失败，互不取消
- 保证作用域在 finally 中释放
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor

from vcatalog.core.exceptions import CatalogError
from vcatalog.core.scope import ScopeRegistry
from vcatalog.services.loader.models import (
    BatchReport,
    CatalogRequest,
    CatalogVersion,
    RequestOutcome,
)
from vcatalog.services.loader.steps import LoadContext, LoaderSteps

logger = logging.getLogger(__name__)


class CatalogVersionLoader:
    """(runtime, version) 目录加载器"""

    def __init__(
        self,
        steps: LoaderSteps,
        scopes: ScopeRegistry,
        max_workers: int = 1,
    ) -> None:
        self.steps = steps
        self.scopes = scopes
        self.max_workers = max(1, max_workers)

    def load(self, request: CatalogRequest) -> CatalogVersion:
        """加载单个请求，失败时抛出触发失败的异常"""
        scope = self.scopes.new_scope(request.request_id)
        ctx = LoadContext(request=request, scope=scope)
        logger.info("开始加载: %s", request.request_id, extra={"request_id": request.request_id})
        try:
            self.steps.resolve_catalog(ctx)
            self.steps.resolve_schema(ctx)
            self.steps.resolve_connectors(ctx)
            self.steps.resolve_crds(ctx)

            scope.seal()
            self.steps.extract_catalog(ctx)
            self.steps.extract_schema(ctx)
            self.steps.extract_connectors(ctx)
            self.steps.extract_crds(ctx)

            self.steps.merge_local(ctx)
            return self.steps.finish(ctx)
        finally:
            self.scopes.release(scope)

    def _load_one(self, request: CatalogRequest) -> RequestOutcome:
        start = time.monotonic()
        try:
            result = self.load(request)
        except CatalogError as e:
            logger.error(
                "加载失败: %s [%s] %s", request.request_id, e.code, e,
                extra={"request_id": request.request_id},
            )
            return RequestOutcome(
                request=request, error=str(e), error_code=e.code,
                duration=time.monotonic() - start,
            )
        except (OSError, ValueError) as e:
            logger.exception("加载请求 '%s' 时出错", request.request_id)
            return RequestOutcome(
                request=request, error=str(e), error_code=type(e).__name__,
                duration=time.monotonic() - start,
            )
        return RequestOutcome(request=request, result=result, duration=time.monotonic() - start)

    def load_all(self, requests: list[CatalogRequest]) -> BatchReport:
        """并行加载全部请求，返回结果与输入顺序一致"""
        if self.max_workers == 1 or len(requests) <= 1:
            outcomes = [self._load_one(r) for r in requests]
        else:
            with ThreadPoolExecutor(
                max_workers=self.max_workers, thread_name_prefix="catalog",
            ) as executor:
                futures = [executor.submit(self._load_one, r) for r in requests]
                outcomes = [f.result() for f in futures]

        report = BatchReport(outcomes=outcomes)
        for o in outcomes:
            status = "成功" if o.success else f"失败 ({o.error_code})"
            logger.info("完成: %s -> %s (%.1f秒)", o.request.request_id, status, o.duration)
        if report.failed:
            logger.warning(
                "加载汇总: %d 成功, %d 失败 (%s)",
                len(report.succeeded), len(report.failed),
                ", ".join(o.request.request_id for o in report.failed),
            )
        return report
