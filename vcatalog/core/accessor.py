"""资源读取器 - 归档 / 展开目录双模式

按成员的文件形态自动选择读取方式，调用方无需区分制品类型:
  - 普通文件: 作为 zip 归档逐条目读取（生产环境的 jar）
  - 目录:     递归遍历文件系统（开发期展开的制品）

冲突规则: 同一作用域内后加入的成员覆盖先加入的成员，
read_one 与 read_many 遵循同一规则；read_many 的冲突会记录为告警。
"""

from __future__ import annotations

import logging
import zipfile
import zlib
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Callable

from vcatalog.core.artifact.models import ResolvedArtifact
from vcatalog.core.exceptions import CacheCorruption, ResourceNotFound, ValidationError
from vcatalog.core.scope import IsolationScope

logger = logging.getLogger(__name__)

KeyFn = Callable[[str], str]


@dataclass
class LoadedResourceBundle:
    """资源包: 逻辑资源名 → 原始内容

    键在包内唯一；重名时后写入者生效，冲突记入 warnings。
    """

    entries: dict[str, bytes] = field(default_factory=dict)
    origins: dict[str, str] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    def put(self, key: str, data: bytes, origin: str = "") -> None:
        if key in self.entries:
            msg = f"资源名冲突: {key} ({self.origins.get(key) or '?'} 被 {origin or '?'} 覆盖)"
            self.warnings.append(msg)
            logger.warning(msg)
        self.entries[key] = data
        self.origins[key] = origin

    def merge(self, other: LoadedResourceBundle, prefix: str = "") -> None:
        """把另一个资源包并入本包，键加上 prefix"""
        self.warnings.extend(other.warnings)
        for key, data in other.entries.items():
            self.put(f"{prefix}{key}", data, other.origins.get(key, ""))

    def text(self, key: str, encoding: str = "utf-8") -> str:
        return self.entries[key].decode(encoding)

    def keys(self) -> list[str]:
        return sorted(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, key: object) -> bool:
        return key in self.entries

    def __getitem__(self, key: str) -> bytes:
        return self.entries[key]


def last_segment(path: str) -> str:
    """默认键: 路径最后一段"""
    return PurePosixPath(path).name


def _open_archive(member: ResolvedArtifact) -> zipfile.ZipFile:
    try:
        return zipfile.ZipFile(member.local_path)
    except (zipfile.BadZipFile, OSError) as e:
        raise CacheCorruption(str(member.local_path), f"无法作为归档打开: {e}") from e


def _read_archive_entry(
    member: ResolvedArtifact, zf: zipfile.ZipFile, info: zipfile.ZipInfo,
) -> bytes:
    try:
        return zf.read(info)
    except (zipfile.BadZipFile, zlib.error, EOFError) as e:
        raise CacheCorruption(
            str(member.local_path), f"归档条目损坏 {info.filename}: {e}",
        ) from e


class ResourceAccessor:
    """作用域资源读取器"""

    def read_one(self, scope: IsolationScope, resource_path: str) -> bytes:
        """读取单个资源，路径精确匹配、区分大小写

        Raises:
            ResourceNotFound: 作用域内没有任何成员包含该资源
        """
        self._require_sealed(scope)
        for member in reversed(scope.members):
            data = self._read_entry(member, resource_path)
            if data is not None:
                logger.debug("读取 %s <- %s (%s)", resource_path, member.coordinate, scope.scope_id)
                return data
        raise ResourceNotFound(scope.scope_id, resource_path)

    def read_optional(self, scope: IsolationScope, resource_path: str) -> bytes | None:
        """可选资源: 不存在时返回 None"""
        try:
            return self.read_one(scope, resource_path)
        except ResourceNotFound:
            return None

    def read_many(
        self,
        scope: IsolationScope,
        folder_prefix: str,
        suffix: str,
        key_fn: KeyFn | None = None,
    ) -> LoadedResourceBundle:
        """批量读取 folder_prefix 下以 suffix 结尾的全部资源

        成员按插入顺序遍历，后者覆盖前者；成员内部的遍历顺序不作保证。
        结果为空不视为错误。
        """
        self._require_sealed(scope)
        to_key = key_fn or last_segment
        bundle = LoadedResourceBundle()
        for member in scope.members:
            for path, data in self._iter_entries(member, folder_prefix, suffix):
                bundle.put(to_key(path), data, origin=str(member.coordinate))
        logger.info(
            "批量读取 %s*%s: %d 个资源 (%s)", folder_prefix, suffix, len(bundle), scope.scope_id,
        )
        return bundle

    @staticmethod
    def _require_sealed(scope: IsolationScope) -> None:
        if not scope.sealed:
            raise ValidationError(f"作用域尚未封存，不能读取资源: {scope.scope_id}")

    # ------------------------------------------------------------------
    # 双模式实现
    # ------------------------------------------------------------------

    def _read_entry(self, member: ResolvedArtifact, resource_path: str) -> bytes | None:
        if member.is_directory:
            return self._read_file(member.local_path, resource_path)
        if member.is_archive:
            with _open_archive(member) as zf:
                try:
                    info = zf.getinfo(resource_path)
                except KeyError:
                    return None
                if info.is_dir():
                    return None
                return _read_archive_entry(member, zf, info)
        raise CacheCorruption(str(member.local_path), "制品文件不存在")

    @staticmethod
    def _read_file(root: Path, resource_path: str) -> bytes | None:
        target = root / resource_path
        try:
            target.resolve().relative_to(root.resolve())
        except ValueError:
            return None
        if not target.is_file():
            return None
        return target.read_bytes()

    def _iter_entries(
        self, member: ResolvedArtifact, prefix: str, suffix: str,
    ) -> Iterator[tuple[str, bytes]]:
        if member.is_directory:
            root = member.local_path
            for p in root.rglob("*"):
                if not p.is_file():
                    continue
                rel = p.relative_to(root).as_posix()
                if rel.startswith(prefix) and rel.endswith(suffix):
                    yield rel, p.read_bytes()
            return
        if member.is_archive:
            with _open_archive(member) as zf:
                for info in zf.infolist():
                    if info.is_dir():
                        continue
                    name = info.filename
                    if name.startswith(prefix) and name.endswith(suffix):
                        yield name, _read_archive_entry(member, zf, info)
            return
        raise CacheCorruption(str(member.local_path), "制品文件不存在")
