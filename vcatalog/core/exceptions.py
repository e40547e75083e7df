"""统一异常体系

所有业务异常继承 CatalogError，替代散落的 ValueError / RuntimeError。
批量加载层据此把每个 (runtime, version) 请求的失败收敛为结构化结果，
CLI 层据此输出友好提示。
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from vcatalog.core.artifact.models import ArtifactCoordinate


class CatalogError(Exception):
    """框架基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(CatalogError):
    """配置文件缺失或内容无效"""

    code = "CONFIG_ERROR"


class ValidationError(CatalogError):
    """输入数据校验失败"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.details = details or []


class UnresolvableArtifact(CatalogError):
    """制品无法从任何已配置的仓库拉取（网络失败、404 或超时耗尽）"""

    code = "UNRESOLVABLE_ARTIFACT"

    def __init__(
        self,
        coordinate: ArtifactCoordinate,
        tried_endpoints: list[str] | None = None,
        reason: str = "",
    ) -> None:
        self.coordinate = coordinate
        self.tried_endpoints = list(tried_endpoints or [])
        tried = ", ".join(self.tried_endpoints) or "无"
        detail = f" ({reason})" if reason else ""
        super().__init__(f"制品无法解析: {coordinate}，已尝试仓库: {tried}{detail}")


class TransitiveResolutionFailure(CatalogError):
    """已解析制品的某个传递依赖无法解析"""

    code = "TRANSITIVE_RESOLUTION_FAILURE"

    def __init__(
        self,
        root: ArtifactCoordinate,
        failed: ArtifactCoordinate,
        cause: CatalogError,
    ) -> None:
        self.root = root
        self.failed = failed
        self.cause = cause
        super().__init__(f"{root} 的传递依赖 {failed} 解析失败: {cause}")


class ScopeSealed(CatalogError):
    """作用域封存后仍尝试修改（编排逻辑缺陷）"""

    code = "SCOPE_SEALED"

    def __init__(self, scope_id: str) -> None:
        self.scope_id = scope_id
        super().__init__(f"作用域已封存，不允许再添加成员: {scope_id}")


class ResourceNotFound(CatalogError):
    """已封存作用域中不存在指定资源"""

    code = "RESOURCE_NOT_FOUND"

    def __init__(self, scope_id: str, path: str) -> None:
        self.scope_id = scope_id
        self.path = path
        super().__init__(f"作用域 {scope_id} 中未找到资源: {path}")


class CacheCorruption(CatalogError):
    """缓存文件形态校验失败（如声称是归档却无法打开）"""

    code = "CACHE_CORRUPTION"

    def __init__(self, path: str, reason: str = "") -> None:
        self.path = path
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(f"缓存文件已损坏 {path}{detail}")


class ExternalResourceError(CatalogError):
    """固定 URL 的外部资源拉取失败"""

    code = "EXTERNAL_RESOURCE_ERROR"

    def __init__(self, url: str, reason: str = "") -> None:
        self.url = url
        super().__init__(f"外部资源拉取失败: {url} - {reason}")
