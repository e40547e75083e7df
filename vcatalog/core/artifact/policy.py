"""仓库选择策略

根据版本字符串决定查询哪些远程仓库，以及查询顺序:
  - 普通版本:            [公共仓库]
  - 带厂商后缀的版本:    [公共仓库, 厂商仓库]  （公共优先，厂商兜底）
  - 厂商独占 group:      [厂商仓库]
纯函数，不做任何 IO。
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from vcatalog.core.artifact.models import ArtifactCoordinate, RepositoryEndpoint

if TYPE_CHECKING:
    from vcatalog.core.config import Config


class RepositoryPolicy:
    """仓库选择策略"""

    def __init__(
        self,
        public: RepositoryEndpoint,
        vendor: RepositoryEndpoint | None = None,
        vendor_suffix: str = "redhat",
        vendor_only_groups: list[str] | tuple[str, ...] = (),
    ) -> None:
        self.public = public
        self.vendor = vendor
        self.vendor_suffix = vendor_suffix.lower()
        self.vendor_only_groups = frozenset(vendor_only_groups)

    @classmethod
    def from_config(cls, cfg: Config) -> RepositoryPolicy:
        vendor = (
            RepositoryEndpoint(cfg.vendor_repository, requires_auth=False, name="vendor")
            if cfg.vendor_repository else None
        )
        return cls(
            public=RepositoryEndpoint(cfg.public_repository, name="public"),
            vendor=vendor,
            vendor_suffix=cfg.vendor_suffix,
            vendor_only_groups=cfg.vendor_only_groups,
        )

    def is_vendor_version(self, version: str) -> bool:
        return bool(self.vendor_suffix) and self.vendor_suffix in version.lower()

    def endpoints_for(self, coordinate: ArtifactCoordinate) -> list[RepositoryEndpoint]:
        """返回该坐标需要依次尝试的仓库列表"""
        if self.vendor is None or not self.is_vendor_version(coordinate.version):
            return [self.public]
        if coordinate.group in self.vendor_only_groups:
            return [self.vendor]
        return [self.public, self.vendor]
