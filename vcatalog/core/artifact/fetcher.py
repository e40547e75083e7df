"""制品拉取器

职责:
- 按仓库策略给出的顺序逐个尝试下载，首个成功即停止
- 下载到同目录临时文件 → 形态校验 → rename 到缓存路径
- 超时、404、连接错误、校验失败一律视为该仓库失败，回退到下一个仓库
"""

from __future__ import annotations

import logging
from pathlib import Path

from vcatalog.core.artifact.cache import verify_shape
from vcatalog.core.artifact.models import ArtifactCoordinate, RepositoryEndpoint
from vcatalog.core.exceptions import CacheCorruption, UnresolvableArtifact, ValidationError
from vcatalog.utils.net import HttpTransport, validate_url_scheme
from vcatalog.utils.yaml_io import atomic_replace

logger = logging.getLogger(__name__)


class ArtifactFetcher:
    """制品拉取器 - 多仓库有序回退"""

    def __init__(self, transport: HttpTransport, timeout: float = 60) -> None:
        self.transport = transport
        self.timeout = timeout

    def fetch_to(
        self,
        coordinate: ArtifactCoordinate,
        extension: str,
        endpoints: list[RepositoryEndpoint],
        dest: Path,
    ) -> RepositoryEndpoint:
        """下载到 dest，返回成功的仓库；全部失败时抛出 UnresolvableArtifact"""
        tried: list[str] = []
        last_reason = ""
        for endpoint in endpoints:
            url = endpoint.artifact_url(coordinate, extension)
            tried.append(str(endpoint))
            try:
                validate_url_scheme(url, context=f"artifact {coordinate}")
                atomic_replace(
                    dest,
                    lambda tmp, u=url: self._download_verified(u, tmp, extension),
                    suffix=".part",
                )
            except (OSError, CacheCorruption, ValidationError) as e:
                last_reason = str(e)
                logger.warning(
                    "  仓库 %s 拉取 %s (%s) 失败: %s", endpoint, coordinate, extension, e,
                )
                continue
            logger.info("  已下载: %s (%s) <- %s", coordinate, extension, endpoint)
            return endpoint

        raise UnresolvableArtifact(coordinate, tried, reason=last_reason)

    def _download_verified(self, url: str, tmp: Path, extension: str) -> None:
        logger.debug("  下载: %s", url)
        self.transport.download(url, tmp, timeout=self.timeout)
        verify_shape(tmp, extension)
