"""网络工具 - URL 安全校验 + HTTP 传输

所有出站请求都经过 HttpTransport 协议，默认实现基于 urllib，
每次请求都带有显式超时。测试时注入内存实现，无需 patch urllib。
"""

from __future__ import annotations

import http.client
import logging
import shutil
import socket
import urllib.error
import urllib.request
from pathlib import Path
from typing import Protocol
from urllib.parse import urlparse

from vcatalog.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

_ALLOWED_SCHEMES = frozenset(("http", "https"))
_USER_AGENT = "vcatalog"


def validate_url_scheme(url: str, *, context: str = "") -> None:
    """校验 URL 仅使用 http/https，防止 file:// 等非预期协议访问

    Raises:
        ValidationError: URL scheme 不在白名单内
    """
    parsed = urlparse(url)
    if parsed.scheme not in _ALLOWED_SCHEMES:
        label = f" ({context})" if context else ""
        raise ValidationError(
            f"不允许的 URL 协议 '{parsed.scheme}'{label}，"
            f"仅支持 http/https: {url}"
        )


class TransportError(ConnectionError):
    """一次 HTTP 请求失败（连接错误、非 2xx、超时、响应体截断）"""

    def __init__(self, url: str, reason: str, status: int | None = None) -> None:
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.status = status


class HttpTransport(Protocol):
    """HTTP 传输协议 - 抽象下载和小文件读取"""

    def download(self, url: str, dest: Path, *, timeout: float) -> None:
        """把 url 的内容写入 dest（dest 由调用方负责原子替换）"""
        ...

    def fetch(self, url: str, *, timeout: float) -> bytes:
        """读取 url 的完整内容"""
        ...


class UrllibTransport:
    """基于 urllib 的默认传输实现"""

    def _open(self, url: str, timeout: float):  # type: ignore[no-untyped-def]
        validate_url_scheme(url, context="http transport")
        req = urllib.request.Request(url, headers={"User-Agent": _USER_AGENT})
        try:
            return urllib.request.urlopen(req, timeout=timeout)  # nosec B310
        except urllib.error.HTTPError as e:
            raise TransportError(url, f"HTTP {e.code}", status=e.code) from e
        except (urllib.error.URLError, socket.timeout, TimeoutError) as e:
            raise TransportError(url, str(e)) from e
        except http.client.HTTPException as e:
            raise TransportError(url, f"响应异常: {e!r}") from e

    def download(self, url: str, dest: Path, *, timeout: float) -> None:
        with self._open(url, timeout) as resp:
            try:
                with open(dest, "wb") as f:
                    shutil.copyfileobj(resp, f)
            except (socket.timeout, TimeoutError) as e:
                raise TransportError(url, f"读取超时: {e}") from e
            except http.client.HTTPException as e:
                raise TransportError(url, f"连接中断: {e!r}") from e
        logger.debug("已下载 %s -> %s", url, dest)

    def fetch(self, url: str, *, timeout: float) -> bytes:
        with self._open(url, timeout) as resp:
            try:
                data: bytes = resp.read()
            except (socket.timeout, TimeoutError) as e:
                raise TransportError(url, f"读取超时: {e}") from e
            except http.client.HTTPException as e:
                raise TransportError(url, f"连接中断: {e!r}") from e
        return data
