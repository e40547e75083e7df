"""目录加载命令：load, batch"""

import json
from pathlib import Path

import click

from vcatalog.cli import _fail
from vcatalog.core.exceptions import CatalogError
from vcatalog.services.container import get_container
from vcatalog.services.loader import (
    CatalogRequest,
    CatalogVersion,
    RequestOutcome,
    RuntimeKind,
    load_worklist,
)
from vcatalog.utils.yaml_io import atomic_write_bytes


def register_commands(main: click.Group) -> None:
    """注册目录加载相关命令"""
    main.add_command(load)
    main.add_command(batch)


def _write_bundle(out_dir: str, result: CatalogVersion) -> Path:
    """把资源包和溯源记录写到 out_dir/<request_id>/"""
    base = Path(out_dir) / result.request.request_id
    for key, data in result.bundle.entries.items():
        atomic_write_bytes(base / key, data)
    record = result.provenance.to_dict()
    record["warnings"] = list(result.bundle.warnings)
    atomic_write_bytes(
        base / "provenance.json",
        json.dumps(record, indent=2, ensure_ascii=False).encode("utf-8"),
    )
    return base


def _echo_outcome(o: RequestOutcome) -> None:
    if o.success and o.result is not None:
        click.echo(
            f"  [OK  ] {o.request.request_id:32s} "
            f"{len(o.result.bundle):5d} 资源  {o.duration:.1f}s",
        )
    else:
        click.echo(f"  [FAIL] {o.request.request_id:32s} [{o.error_code}] {o.error}")


@click.command()
@click.argument("runtime", type=click.Choice([k.value for k in RuntimeKind]))
@click.argument("version")
@click.option("--kamelets-version", default="", help="连接器定义制品版本（默认取配置）")
@click.option("--crds-version", default="", help="CRD 制品版本（默认取配置）")
@click.option("--out", "-o", default=None, help="资源包输出目录")
def load(
    runtime: str, version: str, kamelets_version: str,
    crds_version: str, out: str | None,
) -> None:
    """加载单个 (runtime, version) 的全部资源"""
    request = CatalogRequest(
        runtime=RuntimeKind.parse(runtime), version=version,
        kamelets_version=kamelets_version, crds_version=crds_version,
    )
    try:
        result = get_container().loader.load(request)
    except (CatalogError, OSError, ValueError) as e:
        _fail(e)

    click.echo(f"已加载 {request.request_id}: {len(result.bundle)} 个资源")
    for coord in result.provenance.coordinates:
        click.echo(f"  - {coord}")
    for w in result.bundle.warnings:
        click.echo(f"  告警: {w}")
    if out:
        click.echo(f"已写出: {_write_bundle(out, result)}")


@click.command()
@click.argument("worklist", type=click.Path(exists=True, dir_okay=False))
@click.option("--parallel", "-p", default=0, help="并行请求数（默认取配置 max_workers）")
@click.option("--out", "-o", default=None, help="资源包输出目录")
def batch(worklist: str, parallel: int, out: str | None) -> None:
    """按工作清单批量加载，任一请求失败时退出码为 1"""
    try:
        requests = load_worklist(worklist)
    except CatalogError as e:
        _fail(e)
    if not requests:
        click.echo(f"工作清单为空: {worklist}")
        return

    loader = get_container().loader
    if parallel > 0:
        loader.max_workers = parallel
    report = loader.load_all(requests)

    for o in report.outcomes:
        _echo_outcome(o)
        if out and o.result is not None:
            _write_bundle(out, o.result)
    click.echo(f"汇总: {len(report.succeeded)} 成功, {len(report.failed)} 失败")
    if not report.success:
        raise SystemExit(1)
