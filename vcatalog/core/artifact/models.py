"""制品数据模型

数据类:
- ArtifactCoordinate: 制品坐标 (group, name, version)
- RepositoryEndpoint: 远程仓库地址
- ResolvedArtifact: 已解析到本地文件的制品
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from vcatalog.core.exceptions import ValidationError

ARCHIVE_EXTENSION = "jar"
DESCRIPTOR_EXTENSION = "pom"


@dataclass(frozen=True)
class ArtifactCoordinate:
    """制品坐标，不可变值对象，三个字段共同决定相等性"""

    group: str
    name: str
    version: str

    @classmethod
    def parse(cls, text: str) -> ArtifactCoordinate:
        """解析 group:name:version 形式的坐标字符串"""
        parts = [p.strip() for p in text.split(":")]
        if len(parts) != 3 or not all(parts):
            raise ValidationError(
                f"无效的制品坐标 '{text}'，期望格式 group:name:version",
            )
        return cls(group=parts[0], name=parts[1], version=parts[2])

    @property
    def key(self) -> str:
        """不带版本的标识 group:name"""
        return f"{self.group}:{self.name}"

    def repository_path(self, extension: str = ARCHIVE_EXTENSION) -> str:
        """Maven 仓库布局下的相对路径"""
        return (
            f"{self.group.replace('.', '/')}/{self.name}/{self.version}/"
            f"{self.name}-{self.version}.{extension}"
        )

    def __str__(self) -> str:
        return f"{self.group}:{self.name}:{self.version}"


@dataclass(frozen=True)
class RepositoryEndpoint:
    """远程仓库地址"""

    url: str
    requires_auth: bool = False
    name: str = ""

    def artifact_url(
        self, coordinate: ArtifactCoordinate, extension: str = ARCHIVE_EXTENSION,
    ) -> str:
        return f"{self.url.rstrip('/')}/{coordinate.repository_path(extension)}"

    def __str__(self) -> str:
        return self.name or self.url


@dataclass(frozen=True)
class ResolvedArtifact:
    """已解析的制品

    local_path 的生命周期归进程级下载缓存所有，
    多个隔离作用域引用同一文件时不会复制。
    """

    coordinate: ArtifactCoordinate
    local_path: Path
    transitive_closure: frozenset[ArtifactCoordinate] = field(default_factory=frozenset)

    @property
    def is_archive(self) -> bool:
        return self.local_path.is_file()

    @property
    def is_directory(self) -> bool:
        return self.local_path.is_dir()
