"""集中配置管理

替代各模块散落的 DEFAULT_* 常量，提供统一的配置入口。
支持从 YAML 文件加载 + 编程式覆盖。
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field

from vcatalog.core.exceptions import ConfigError
from vcatalog.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

DEFAULT_CRD_FILES = [
    "camel.apache.org_integrations.yaml",
    "camel.apache.org_kameletbindings.yaml",
    "camel.apache.org_kamelets.yaml",
    "camel.apache.org_pipes.yaml",
]


@dataclass
class Config:
    """框架全局配置"""

    # 目录
    cache_dir: str = ".cache/artifacts"
    local_resources_dir: str = "resources"

    # 远程仓库
    public_repository: str = "https://repo1.maven.org/maven2"
    vendor_repository: str = "https://maven.repository.redhat.com/ga"
    vendor_suffix: str = "redhat"
    vendor_only_groups: list[str] = field(default_factory=list)

    # 执行
    max_workers: int = 4
    download_timeout: int = 60

    # 固定版本的制品
    kamelets_version: str = "4.8.0"
    crds_version: str = "2.5.0"
    crd_files: list[str] = field(default_factory=lambda: list(DEFAULT_CRD_FILES))
    external_schema_url: str = (
        "https://raw.githubusercontent.com/yannh/kubernetes-json-schema/"
        "master/master/_definitions.json"
    )

    # 传递依赖补充清单: {"group:name": ["group:name:{version}", ...]}
    augmentations: dict[str, list[str]] = field(default_factory=dict)
    # 开发期本地制品: {"group:name:version": "/path/to/exploded-or-jar"}
    local_overrides: dict[str, str] = field(default_factory=dict)

    # 自定义扩展 (放不到字段里的配置项)
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_file(cls, path: str = "configs/default.yml") -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        data = load_yaml(path)
        if not data:
            return cls()
        known = {f.name for f in cls.__dataclass_fields__.values()}
        matched = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}
        try:
            cfg = cls(**matched)
        except TypeError as e:
            raise ConfigError(f"配置文件内容无效: {path} - {e}") from e
        cfg.extra = extra
        cfg.validate()
        return cfg

    def validate(self) -> None:
        """基础合法性检查"""
        if int(self.max_workers) < 1:
            raise ConfigError(f"max_workers 必须 >= 1，实际: {self.max_workers}")
        if int(self.download_timeout) <= 0:
            raise ConfigError(f"download_timeout 必须 > 0，实际: {self.download_timeout}")
        if not self.public_repository:
            raise ConfigError("public_repository 不能为空")
        for key, items in self.augmentations.items():
            if not isinstance(items, list):
                raise ConfigError(f"augmentations.{key} 必须是列表")

    def to_dict(self) -> dict:
        return asdict(self)


# 全局单例，首次 import 时不加载文件；由 CLI 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str = "configs/default.yml") -> Config:
    """从文件初始化全局配置"""
    global _current  # noqa: PLW0603
    _current = Config.from_file(path)
    logger.info("配置已加载: %s", path)
    return _current
