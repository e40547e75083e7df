"""目录版本加载数据模型

数据类:
- RuntimeKind / RuntimeProfile: 三种运行时及其目录制品
- CatalogRequest: 单个 (runtime, version) 加载请求
- LoaderStage: 单请求状态机阶段
- Provenance / CatalogVersion: 加载结果与溯源信息
- RequestOutcome / BatchReport: 批量加载的逐请求结果
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from vcatalog.core.accessor import LoadedResourceBundle
from vcatalog.core.artifact.models import ArtifactCoordinate
from vcatalog.core.exceptions import ValidationError
from vcatalog.utils.yaml_io import load_yaml


class RuntimeKind(str, Enum):
    """运行时类型，同一逻辑目录在三种运行时下对应不同制品"""

    MAIN = "main"
    QUARKUS = "quarkus"
    SPRING_BOOT = "spring-boot"

    @classmethod
    def parse(cls, value: str) -> RuntimeKind:
        try:
            return cls(value.strip().lower())
        except ValueError as e:
            allowed = ", ".join(k.value for k in cls)
            raise ValidationError(f"未知的运行时 '{value}'，可选: {allowed}") from e


@dataclass(frozen=True)
class RuntimeProfile:
    """运行时对应的目录制品与制品内的资源前缀"""

    catalog_group: str
    catalog_name: str
    resource_prefix: str

    def catalog_coordinate(self, version: str) -> ArtifactCoordinate:
        return ArtifactCoordinate(self.catalog_group, self.catalog_name, version)


RUNTIME_PROFILES: dict[RuntimeKind, RuntimeProfile] = {
    RuntimeKind.MAIN: RuntimeProfile(
        "org.apache.camel", "camel-catalog",
        "org/apache/camel/catalog/",
    ),
    RuntimeKind.QUARKUS: RuntimeProfile(
        "org.apache.camel.quarkus", "camel-quarkus-catalog",
        "org/apache/camel/catalog/quarkus/",
    ),
    RuntimeKind.SPRING_BOOT: RuntimeProfile(
        "org.apache.camel.springboot", "camel-catalog-provider-springboot",
        "org/apache/camel/springboot/catalog/",
    ),
}

CATALOG_CATEGORIES = ("components", "dataformats", "languages", "models")

# 变体运行时的目录依赖核心目录，schema 版本取核心目录的版本
CORE_CATALOG_KEY = "org.apache.camel:camel-catalog"
SCHEMA_ARTIFACT = ("org.apache.camel", "camel-yaml-dsl")
SCHEMA_RESOURCE = "schema/camelYamlDsl.json"

CONNECTORS_ARTIFACT = ("org.apache.camel.kamelets", "camel-kamelets")
CONNECTORS_FOLDER = "kamelets/"
CONNECTORS_SUFFIX = ".kamelet.yaml"

CRDS_ARTIFACT = ("org.apache.camel.k", "camel-k-crds")
CRDS_FOLDER = "META-INF/crds/"

LOCAL_COORDINATE = ArtifactCoordinate("local", "resources", "0")


class LoaderStage(str, Enum):
    """单个请求的状态机阶段（严格顺序）"""

    START = "start"
    CATALOG_RESOLVED = "catalog_resolved"
    SCHEMA_RESOLVED = "schema_resolved"
    CONNECTORS_RESOLVED = "connectors_resolved"
    CRDS_RESOLVED = "crds_resolved"
    DONE = "done"


@dataclass(frozen=True)
class CatalogRequest:
    """单个 (runtime, version) 加载请求"""

    runtime: RuntimeKind
    version: str
    kamelets_version: str = ""
    crds_version: str = ""

    @property
    def request_id(self) -> str:
        return f"{self.runtime.value}-{self.version}"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CatalogRequest:
        runtime = data.get("runtime", RuntimeKind.MAIN.value)
        version = str(data.get("version", "")).strip()
        if not version:
            raise ValidationError(f"工作清单条目缺少 version: {data}")
        return cls(
            runtime=RuntimeKind.parse(str(runtime)),
            version=version,
            kamelets_version=str(data.get("kamelets_version", "") or ""),
            crds_version=str(data.get("crds_version", "") or ""),
        )


@dataclass
class Provenance:
    """溯源记录: 本次请求实际使用的全部坐标"""

    scope_id: str
    coordinates: list[str] = field(default_factory=list)
    stages: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "scope_id": self.scope_id,
            "coordinates": list(self.coordinates),
            "stages": list(self.stages),
        }


@dataclass
class CatalogVersion:
    """单个请求的加载结果，交给下游目录组装阶段"""

    request: CatalogRequest
    bundle: LoadedResourceBundle
    provenance: Provenance


@dataclass
class RequestOutcome:
    """单个请求的成功 / 失败结果"""

    request: CatalogRequest
    result: CatalogVersion | None = None
    error: str = ""
    error_code: str = ""
    duration: float = 0.0

    @property
    def success(self) -> bool:
        return self.result is not None


@dataclass
class BatchReport:
    """批量加载报告，顺序与工作清单一致"""

    outcomes: list[RequestOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> list[RequestOutcome]:
        return [o for o in self.outcomes if o.success]

    @property
    def failed(self) -> list[RequestOutcome]:
        return [o for o in self.outcomes if not o.success]

    @property
    def success(self) -> bool:
        return not self.failed


def load_worklist(path: str | Path) -> list[CatalogRequest]:
    """读取 YAML 工作清单: {requests: [{runtime, version, ...}, ...]}"""
    data = load_yaml(path)
    entries = data.get("requests") or []
    if not isinstance(entries, list):
        raise ValidationError(f"工作清单 requests 必须是列表: {path}")
    requests: list[CatalogRequest] = []
    for e in entries:
        if not isinstance(e, dict):
            raise ValidationError(f"工作清单条目必须是映射: {e!r}")
        requests.append(CatalogRequest.from_dict(e))
    return requests
