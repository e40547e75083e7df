"""依赖描述文件（POM）解析

只读取构造传递依赖集合所需的最小信息:
- 项目自身坐标（缺省 group 继承自 <parent>）
- <properties> 占位符替换，含 ${project.version} / ${project.groupId}
- <dependencies> 中 compile / runtime 作用域、非 optional、jar 类型的依赖

不处理父 POM 继承、dependencyManagement 与版本区间；
版本缺失或占位符无法展开的依赖记录 DEBUG 日志后跳过。
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from xml.etree import ElementTree

from vcatalog.core.artifact.models import ArtifactCoordinate
from vcatalog.core.exceptions import CacheCorruption

logger = logging.getLogger(__name__)

_PLACEHOLDER_RE = re.compile(r"\$\{([^}]+)\}")
_TRANSITIVE_SCOPES = frozenset(("compile", "runtime"))


@dataclass
class Descriptor:
    """解析后的依赖描述"""

    coordinate: ArtifactCoordinate | None
    dependencies: list[ArtifactCoordinate] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def _strip_ns(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _child(elem: ElementTree.Element | None, name: str) -> ElementTree.Element | None:
    if elem is None:
        return None
    for c in elem:
        if _strip_ns(c.tag) == name:
            return c
    return None


def _children(elem: ElementTree.Element | None, name: str) -> list[ElementTree.Element]:
    if elem is None:
        return []
    return [c for c in elem if _strip_ns(c.tag) == name]


def _text(elem: ElementTree.Element | None, name: str) -> str:
    c = _child(elem, name)
    return (c.text or "").strip() if c is not None else ""


def _expand(value: str, props: dict[str, str]) -> str:
    # 属性值本身也可能引用其他属性，最多展开几轮
    for _ in range(5):
        expanded = _PLACEHOLDER_RE.sub(lambda m: props.get(m.group(1), m.group(0)), value)
        if expanded == value:
            break
        value = expanded
    return value


def parse_descriptor(data: bytes, *, source: str = "<pom>") -> Descriptor:
    """解析 POM 内容，XML 非法时抛出 CacheCorruption"""
    try:
        root = ElementTree.fromstring(data)
    except ElementTree.ParseError as e:
        raise CacheCorruption(source, f"描述文件无法解析: {e}") from e

    parent = _child(root, "parent")
    group = _text(root, "groupId") or _text(parent, "groupId")
    name = _text(root, "artifactId")
    version = _text(root, "version") or _text(parent, "version")

    props: dict[str, str] = {}
    properties = _child(root, "properties")
    if properties is not None:
        for p in properties:
            props[_strip_ns(p.tag)] = (p.text or "").strip()
    props.update({
        "project.groupId": group,
        "project.artifactId": name,
        "project.version": version,
        "pom.version": version,
        "project.parent.version": _text(parent, "version"),
    })

    coordinate = (
        ArtifactCoordinate(group, name, _expand(version, props))
        if group and name and version else None
    )
    descriptor = Descriptor(coordinate=coordinate)

    for dep in _children(_child(root, "dependencies"), "dependency"):
        d_group = _expand(_text(dep, "groupId"), props)
        d_name = _expand(_text(dep, "artifactId"), props)
        d_version = _expand(_text(dep, "version"), props)
        scope = _text(dep, "scope") or "compile"
        label = f"{d_group}:{d_name}:{d_version or '?'}"

        if scope not in _TRANSITIVE_SCOPES:
            continue
        if _text(dep, "optional").lower() == "true":
            continue
        if (_text(dep, "type") or "jar") != "jar" or _text(dep, "classifier"):
            continue
        if not d_version or _PLACEHOLDER_RE.search(label):
            logger.debug("跳过版本无法确定的依赖: %s (%s)", label, source)
            descriptor.skipped.append(label)
            continue
        descriptor.dependencies.append(ArtifactCoordinate(d_group, d_name, d_version))

    return descriptor
