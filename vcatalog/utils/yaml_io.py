"""YAML 读取与原子写入工具

集中管理配置 / 工作清单的反序列化，以及制品缓存、导出目录的原子落盘。
统一 encoding="utf-8"、空值保护、目录自动创建。
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Callable

import yaml

logger = logging.getLogger(__name__)

# YAML 文件最大大小限制 (10MB)，防止恶意大文件导致内存耗尽
MAX_YAML_SIZE = 10 * 1024 * 1024


def atomic_replace(
    path: Path,
    write_fn: Callable[[Path], None],
    *,
    suffix: str = ".tmp",
) -> None:
    """原子落盘：先由 write_fn 写入同目录临时文件，再 rename 到目标路径

    write_fn 抛出任何异常时临时文件被删除，目标路径保持原状，
    并发读者永远看不到写了一半的文件。
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(path.parent), suffix=suffix)
    os.close(fd)
    try:
        write_fn(Path(tmp))
        os.replace(tmp, str(path))
    except BaseException:
        try:
            os.unlink(tmp)
        except OSError:
            # 临时文件清理失败不影响原异常抛出
            pass
        raise


def atomic_write_bytes(path: Path, content: bytes) -> None:
    """原子写入二进制内容"""
    atomic_replace(path, lambda tmp: tmp.write_bytes(content))


def load_yaml(path: str | Path) -> dict[str, Any]:
    """安全读取 YAML 文件

    参数:
        path: YAML 文件路径

    返回:
        dict: 解析后的字典。如果文件不存在、为空、或内容不是字典类型，返回空字典

    异常:
        yaml.YAMLError: YAML 格式错误
        OSError: IO 错误
        ValueError: 文件过大（超过 MAX_YAML_SIZE）
    """
    p = Path(path)
    if not p.exists():
        return {}

    file_size = p.stat().st_size
    if file_size > MAX_YAML_SIZE:
        raise ValueError(
            f"YAML 文件过大: {p} ({file_size} 字节), "
            f"超过限制 {MAX_YAML_SIZE} 字节"
        )

    try:
        with open(p, encoding="utf-8") as f:
            result = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error("解析 YAML 文件失败: %s, 错误: %s", path, e)
        raise

    if result is None:
        return {}
    if not isinstance(result, dict):
        logger.warning(
            "%s 内容不是字典类型 (实际类型: %s)，返回空字典",
            path, type(result).__name__,
        )
        return {}
    return result
