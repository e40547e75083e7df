"""测试共享 fixture - 内存 HTTP 传输层 + 假 Maven 仓库

整体架构:

  FakeRepository.publish()        FakeTransport                 被测对象
  ┌──────────────────────┐    ┌────────────────────┐    ┌───────────────────┐
  │ jar: zip 条目        │───>│ files[url] = bytes │<───│ ArtifactFetcher   │
  │ pom: 依赖声明        │    │ calls: 请求顺序    │    │ ExternalResource  │
  └──────────────────────┘    └────────────────────┘    └───────────────────┘

测试只与内存数据交互，不访问网络；calls 用于断言请求次数与仓库顺序。
"""

from __future__ import annotations

import http.client
import io
import threading
import time
import urllib.error
import zipfile
from pathlib import Path

import pytest

from vcatalog.core.artifact import (
    ArtifactCoordinate,
    ArtifactFetcher,
    ArtifactResolver,
    DownloadCache,
    RepositoryEndpoint,
    RepositoryPolicy,
)
from vcatalog.utils import net
from vcatalog.utils.net import HttpTransport, TransportError, UrllibTransport

PUBLIC_URL = "https://repo.test/maven2"
VENDOR_URL = "https://vendor.test/ga"


def _make_jar(entries: dict[str, bytes | str]) -> bytes:
    """构造内存 zip 归档"""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, data in entries.items():
            zf.writestr(name, data.encode("utf-8") if isinstance(data, str) else data)
    return buf.getvalue()


def _make_pom(
    coord: ArtifactCoordinate,
    deps: list[ArtifactCoordinate] | tuple[ArtifactCoordinate, ...] = (),
) -> bytes:
    """构造只含依赖声明的最小 POM"""
    dep_xml = "".join(
        f"<dependency><groupId>{d.group}</groupId><artifactId>{d.name}</artifactId>"
        f"<version>{d.version}</version></dependency>"
        for d in deps
    )
    return (
        '<?xml version="1.0"?>'
        '<project xmlns="http://maven.apache.org/POM/4.0.0">'
        f"<groupId>{coord.group}</groupId><artifactId>{coord.name}</artifactId>"
        f"<version>{coord.version}</version>"
        f"<dependencies>{dep_xml}</dependencies></project>"
    ).encode("utf-8")


class FakeTransport:
    """内存 HTTP 传输层，记录每次请求的 URL"""

    def __init__(self, delay: float = 0.0) -> None:
        self.files: dict[str, bytes] = {}
        self.timeouts: set[str] = set()
        self.truncated: set[str] = set()
        self.calls: list[str] = []
        self.delay = delay
        self._lock = threading.Lock()

    def _get(self, url: str) -> bytes:
        with self._lock:
            self.calls.append(url)
        if self.delay:
            time.sleep(self.delay)
        if url in self.timeouts:
            raise TransportError(url, "timed out")
        data = self.files.get(url)
        if data is None:
            raise TransportError(url, "HTTP 404", status=404)
        return data

    def download(self, url: str, dest: Path, *, timeout: float) -> None:
        dest.write_bytes(self._get(url))

    def fetch(self, url: str, *, timeout: float) -> bytes:
        return self._get(url)

    def count(self, suffix: str) -> int:
        with self._lock:
            return sum(1 for u in self.calls if u.endswith(suffix))


class _TruncatedResponse(io.BytesIO):
    """连接在响应体中途断开"""

    def read(self, size: int | None = -1) -> bytes:
        raise http.client.IncompleteRead(b"partial", 100)


class FakeRepository:
    """假 Maven 仓库: 发布 jar + pom 到 FakeTransport"""

    def __init__(self, transport: FakeTransport, base_url: str) -> None:
        self.transport = transport
        self.endpoint = RepositoryEndpoint(base_url)

    def publish(
        self,
        coord: ArtifactCoordinate | str,
        entries: dict[str, bytes | str] | None = None,
        deps: list[ArtifactCoordinate | str] | tuple[ArtifactCoordinate | str, ...] = (),
    ) -> ArtifactCoordinate:
        c = ArtifactCoordinate.parse(coord) if isinstance(coord, str) else coord
        dep_coords = [ArtifactCoordinate.parse(d) if isinstance(d, str) else d for d in deps]
        self.transport.files[self.endpoint.artifact_url(c, "jar")] = _make_jar(entries or {"META-INF/MANIFEST.MF": "x"})
        self.transport.files[self.endpoint.artifact_url(c, "pom")] = _make_pom(c, dep_coords)
        return c

    def url(self, coord: ArtifactCoordinate, extension: str = "jar") -> str:
        return self.endpoint.artifact_url(coord, extension)


@pytest.fixture()
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture()
def urllib_transport(monkeypatch: pytest.MonkeyPatch, transport: FakeTransport) -> UrllibTransport:
    """真实的 UrllibTransport，urlopen 改为读取 transport.files

    transport.truncated 中的 URL 返回中途断开的响应体。
    """

    def fake_urlopen(req, timeout):  # type: ignore[no-untyped-def]
        url = req.full_url
        with transport._lock:
            transport.calls.append(url)
        if url in transport.truncated:
            return _TruncatedResponse()
        data = transport.files.get(url)
        if data is None:
            raise urllib.error.HTTPError(url, 404, "Not Found", {}, None)  # type: ignore[arg-type]
        return io.BytesIO(data)

    monkeypatch.setattr(net.urllib.request, "urlopen", fake_urlopen)
    return UrllibTransport()


@pytest.fixture()
def public_repo(transport: FakeTransport) -> FakeRepository:
    return FakeRepository(transport, PUBLIC_URL)


@pytest.fixture()
def vendor_repo(transport: FakeTransport) -> FakeRepository:
    return FakeRepository(transport, VENDOR_URL)


@pytest.fixture()
def policy() -> RepositoryPolicy:
    return RepositoryPolicy(
        public=RepositoryEndpoint(PUBLIC_URL, name="public"),
        vendor=RepositoryEndpoint(VENDOR_URL, name="vendor"),
        vendor_suffix="redhat",
    )


@pytest.fixture()
def make_resolver(tmp_path: Path, transport: FakeTransport, policy: RepositoryPolicy):
    """Resolver 工厂 fixture - 可选传入补充清单 / 本地覆盖 / 传输层"""

    def _make(
        augmentations: dict[str, list[str]] | None = None,
        local_overrides: dict[str, str] | None = None,
        http_transport: HttpTransport | None = None,
    ) -> ArtifactResolver:
        return ArtifactResolver(
            cache=DownloadCache(tmp_path / "cache"),
            fetcher=ArtifactFetcher(http_transport or transport, timeout=5),
            policy=policy,
            augmentations=augmentations,
            local_overrides=local_overrides,
        )

    return _make


@pytest.fixture()
def make_jar():
    """构造内存 zip 归档的工厂"""
    return _make_jar


@pytest.fixture()
def make_pom():
    """构造最小 POM 的工厂"""
    return _make_pom
