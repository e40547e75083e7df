"""隔离作用域

每个 (runtime, version) 请求拥有一个独立的作用域:
  - 构建阶段: add_member() 按顺序加入已解析制品
  - seal() 之后: 成员列表冻结，只读；再次 add_member() 抛出 ScopeSealed

两个作用域即使引用同一个缓存文件，也各自维护成员索引，
作用域 A 中的资源名永远不会由只存在于作用域 B 的成员提供。
"""

from __future__ import annotations

import logging
import threading

from vcatalog.core.artifact.models import ArtifactCoordinate, ResolvedArtifact
from vcatalog.core.exceptions import ScopeSealed, ValidationError

logger = logging.getLogger(__name__)


class IsolationScope:
    """单个版本的隔离作用域"""

    def __init__(self, scope_id: str) -> None:
        self.scope_id = scope_id
        self._members: list[ResolvedArtifact] = []
        self._sealed = False
        self._lock = threading.Lock()

    @property
    def sealed(self) -> bool:
        return self._sealed

    @property
    def members(self) -> tuple[ResolvedArtifact, ...]:
        """成员列表（插入顺序）"""
        return tuple(self._members)

    @property
    def coordinates(self) -> set[ArtifactCoordinate]:
        """全部成员坐标及其传递闭包"""
        result: set[ArtifactCoordinate] = set()
        for m in self._members:
            result.add(m.coordinate)
            result.update(m.transitive_closure)
        return result

    def add_member(self, artifact: ResolvedArtifact) -> None:
        with self._lock:
            if self._sealed:
                raise ScopeSealed(self.scope_id)
            if not artifact.local_path.exists():
                raise ValidationError(
                    f"制品尚未解析到本地，不能加入作用域 {self.scope_id}: "
                    f"{artifact.coordinate} -> {artifact.local_path}",
                )
            if any(m.coordinate == artifact.coordinate for m in self._members):
                logger.debug("成员已存在，忽略: %s (%s)", artifact.coordinate, self.scope_id)
                return
            self._members.append(artifact)

    def add_members(self, artifacts: list[ResolvedArtifact] | tuple[ResolvedArtifact, ...]) -> None:
        for a in artifacts:
            self.add_member(a)

    def seal(self) -> None:
        with self._lock:
            if not self._sealed:
                self._sealed = True
                logger.info("作用域已封存: %s (%d 个成员)", self.scope_id, len(self._members))

    def __repr__(self) -> str:
        state = "sealed" if self._sealed else "open"
        return f"IsolationScope({self.scope_id!r}, members={len(self._members)}, {state})"


class ScopeRegistry:
    """活动作用域登记表（线程安全）

    同一 scope_id 重复构建时，后者完全替换前者；不同 scope_id 互不影响。
    """

    def __init__(self) -> None:
        self._scopes: dict[str, IsolationScope] = {}
        self._lock = threading.Lock()

    def new_scope(self, scope_id: str) -> IsolationScope:
        scope = IsolationScope(scope_id)
        with self._lock:
            if scope_id in self._scopes:
                logger.warning("作用域 %s 已存在，新的构建将替换旧实例", scope_id)
            self._scopes[scope_id] = scope
        return scope

    def get(self, scope_id: str) -> IsolationScope | None:
        with self._lock:
            return self._scopes.get(scope_id)

    def release(self, scope: IsolationScope) -> bool:
        """释放作用域；若该 id 已被新实例替换则保留新实例"""
        with self._lock:
            if self._scopes.get(scope.scope_id) is scope:
                del self._scopes[scope.scope_id]
                return True
            return False

    def active_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._scopes)
