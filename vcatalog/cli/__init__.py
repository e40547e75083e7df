"""vcatalog 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
"""

import os
from typing import NoReturn

import click

from vcatalog import __version__
from vcatalog.core.exceptions import CatalogError
from vcatalog.utils.logger import setup_logging


def _fail(e: Exception) -> NoReturn:
    """输出错误并以退出码 1 结束，非领域错误以异常类型名作为错误码"""
    code = e.code if isinstance(e, CatalogError) else type(e).__name__
    click.echo(f"错误: [{code}] {e}", err=True)
    raise SystemExit(1)


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "-c", "config_path", default="configs/default.yml", help="配置文件路径")
def main(config_path: str) -> None:
    """vcatalog - 多版本组件目录制品解析与资源加载"""
    setup_logging(
        level=os.getenv("VCATALOG_LOG_LEVEL", "INFO"),
        json_output=os.getenv("VCATALOG_LOG_JSON", "") == "1",
    )
    from vcatalog.core.config import init_config
    from vcatalog.services.container import reset_container

    try:
        init_config(config_path)
    except CatalogError as e:
        _fail(e)
    reset_container()


# 注册各领域子命令
from vcatalog.cli.cmd_artifacts import register_commands as _reg_artifacts  # noqa: E402
from vcatalog.cli.cmd_load import register_commands as _reg_load  # noqa: E402

_reg_artifacts(main)
_reg_load(main)
