"""制品解析命令：resolve, cache"""

import click

from vcatalog.cli import _fail
from vcatalog.core.artifact.models import ArtifactCoordinate
from vcatalog.core.exceptions import CatalogError
from vcatalog.services.container import get_container


def register_commands(main: click.Group) -> None:
    """注册制品相关命令"""
    main.add_command(resolve)
    main.add_command(cache)


@click.command()
@click.argument("coordinate")
@click.option("--transitive", "-t", is_flag=True, help="同时解析传递依赖")
def resolve(coordinate: str, transitive: bool) -> None:
    """解析制品坐标 group:name:version 到本地文件（缓存未命中时下载）"""
    resolver = get_container().resolver
    try:
        coord = ArtifactCoordinate.parse(coordinate)
        if transitive:
            artifacts = resolver.resolve_transitive(coord)
        else:
            artifacts = (resolver.resolve(coord),)
    except CatalogError as e:
        _fail(e)

    for a in artifacts:
        click.echo(f"  {str(a.coordinate):60s} {a.local_path}")


@click.command()
def cache() -> None:
    """列出下载缓存中的制品文件"""
    c = get_container().cache
    files = c.list_files()
    if not files:
        click.echo(f"缓存为空: {c.cache_dir}")
        return
    for p in files:
        click.echo(f"  {p.relative_to(c.cache_dir)}  ({p.stat().st_size} 字节)")
