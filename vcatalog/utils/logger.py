"""vcatalog 日志配置

支持普通文本和结构化 JSON 两种输出格式。JSON 格式会带上
加载请求的 request_id（通过 logging 的 extra 传入），
便于在并行批量构建的 CI 日志里按版本过滤。
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

# 通过 extra= 传入、需要写进 JSON 日志的上下文字段
_CONTEXT_FIELDS = ("request_id", "coordinate", "scope_id")


class JSONFormatter(logging.Formatter):
    """结构化 JSON 日志格式器，便于 CI 流水线消费

    输出格式:
        {
            "timestamp": "2024-01-01T12:00:00+00:00",
            "level": "INFO",
            "logger": "vcatalog.core.artifact.resolver",
            "message": "log message",
            "module": "resolver",
            "function": "resolve",
            "line": 42,
            "request_id": "main-4.8.0" (仅在有上下文时),
            "exception": "traceback..." (仅在有异常时)
        }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            # 使用 record.created 记录事件发生时间而非格式化时间
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        for name in _CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                log_entry[name] = str(value)
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, ensure_ascii=False)


def setup_logging(level: str = "INFO", json_output: bool = False) -> None:
    """配置根日志器

    参数:
        level: 日志级别字符串（DEBUG, INFO, WARNING, ERROR, CRITICAL）
        json_output: 为 True 时使用 JSON 格式（适用于 CI），否则使用人类可读格式

    说明:
        - 输出到 stderr，stdout 留给 CLI 的结果输出
        - 自动清理已有 handlers，避免重复输出
    """
    reset_logging()
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stderr)
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        fmt = "%(asctime)s [%(levelname)-7s] %(threadName)s %(name)s: %(message)s"
        handler.setFormatter(logging.Formatter(fmt))

    root.addHandler(handler)


def reset_logging() -> None:
    """清理根日志器上所有已注册的 handlers，恢复到未配置状态"""
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
