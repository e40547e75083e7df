"""制品下载缓存

职责:
- 以 (坐标, 扩展名) 为键管理进程级共享的本地制品文件
- 同一个键同一时刻至多一个下载在进行，并发请求者等待第一个下载的结果
- 文件形态校验（归档可打开 / 描述文件可解析），校验结果在进程内记忆

缓存目录采用 Maven 本地仓库布局:
  <cache_dir>/<group 以 / 分隔>/<name>/<version>/<name>-<version>.<ext>
写入统一走 utils.yaml_io.atomic_replace，读者永远看不到半截文件。
"""

from __future__ import annotations

import logging
import threading
import zipfile
from concurrent.futures import Future
from pathlib import Path
from typing import Callable
from xml.etree import ElementTree

from vcatalog.core.artifact.models import (
    ARCHIVE_EXTENSION,
    DESCRIPTOR_EXTENSION,
    ArtifactCoordinate,
)
from vcatalog.core.exceptions import CacheCorruption

logger = logging.getLogger(__name__)

CacheKey = tuple[ArtifactCoordinate, str]


def verify_shape(path: Path, extension: str) -> None:
    """校验文件形态与扩展名相符，不符时抛出 CacheCorruption"""
    if extension == ARCHIVE_EXTENSION:
        try:
            with zipfile.ZipFile(path) as zf:
                bad = zf.testzip()
        except (zipfile.BadZipFile, OSError) as e:
            raise CacheCorruption(str(path), f"无法作为归档打开: {e}") from e
        if bad is not None:
            raise CacheCorruption(str(path), f"归档条目 CRC 错误: {bad}")
    elif extension == DESCRIPTOR_EXTENSION:
        try:
            ElementTree.parse(path)
        except (ElementTree.ParseError, OSError) as e:
            raise CacheCorruption(str(path), f"描述文件无法解析: {e}") from e


class DownloadCache:
    """进程级下载缓存（线程安全）"""

    def __init__(self, cache_dir: Path) -> None:
        self.cache_dir = Path(cache_dir)
        self._lock = threading.Lock()
        self._inflight: dict[CacheKey, Future[Path]] = {}
        self._verified: set[Path] = set()

    def path_for(self, coordinate: ArtifactCoordinate, extension: str) -> Path:
        return self.cache_dir / coordinate.repository_path(extension)

    def contains(self, coordinate: ArtifactCoordinate, extension: str) -> bool:
        return self.path_for(coordinate, extension).is_file()

    def get_or_fetch(
        self,
        coordinate: ArtifactCoordinate,
        extension: str,
        fetch_fn: Callable[[Path], None],
    ) -> Path:
        """命中直接返回；未命中时由第一个调用者执行 fetch_fn(dest)，其余调用者等待

        fetch_fn 必须原子地写入 dest。失败时异常传播给所有等待者，
        且该键被释放，后续调用可以重试。
        """
        dest = self.path_for(coordinate, extension)
        if dest.is_file():
            logger.debug("缓存命中: %s (%s)", coordinate, extension)
            return dest

        key = (coordinate, extension)
        with self._lock:
            if dest.is_file():
                return dest
            future = self._inflight.get(key)
            owner = future is None
            if future is None:
                future = Future()
                self._inflight[key] = future

        if not owner:
            logger.debug("等待进行中的下载: %s (%s)", coordinate, extension)
            return future.result()

        try:
            fetch_fn(dest)
        except BaseException as exc:
            future.set_exception(exc)
            raise
        else:
            future.set_result(dest)
            return dest
        finally:
            with self._lock:
                self._inflight.pop(key, None)

    def is_verified(self, path: Path) -> bool:
        with self._lock:
            return path in self._verified

    def mark_verified(self, path: Path) -> None:
        with self._lock:
            self._verified.add(path)

    def evict(self, coordinate: ArtifactCoordinate, extension: str) -> None:
        """删除损坏的缓存文件，下次访问视为未命中"""
        path = self.path_for(coordinate, extension)
        with self._lock:
            self._verified.discard(path)
        path.unlink(missing_ok=True)
        logger.warning("已清除损坏的缓存文件: %s", path)

    def list_files(self) -> list[Path]:
        """列出缓存中的所有制品与描述文件"""
        if not self.cache_dir.exists():
            return []
        return sorted(
            p for p in self.cache_dir.rglob("*")
            if p.is_file() and p.suffix in (f".{ARCHIVE_EXTENSION}", f".{DESCRIPTOR_EXTENSION}")
        )
