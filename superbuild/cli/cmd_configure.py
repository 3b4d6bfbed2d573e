"""CLI — 配置并构建依赖"""

from __future__ import annotations

import sys

import click

from superbuild.cli import (
    _container_from_options,
    _diagnostic,
    _parse_kv_pairs,
    _project_options,
)
from superbuild.core.exceptions import SuperbuildError


def register(group: click.Group) -> None:
    group.add_command(configure)


@click.command()
@_project_options
@click.option("-D", "defines", multiple=True, help="设置项，格式: KEY=VALUE（可多次指定）")
@click.option("--generator", "-G", default=None, help="CMake 生成器")
@click.option("--parallel", "-p", default=0, type=int, help="并行构建的依赖数（0 表示使用配置）")
@click.option("--dry-run", is_flag=True, help="只生成计划，不拉取、不构建、不清理")
def configure(
    config_path: str, manifest: str | None, source_dir: str | None,
    binary_dir: str | None, defines: tuple[str, ...], generator: str | None,
    parallel: int, dry_run: bool,
) -> None:
    """拉取、配置、构建并安装启用的依赖，清理被关闭的依赖"""
    from superbuild.services.orchestrator import Orchestrator, RunRequest

    overrides = _parse_kv_pairs(defines)
    if generator:
        overrides["CMAKE_GENERATOR"] = generator
    container = _container_from_options(config_path, manifest, source_dir, binary_dir)
    try:
        report = Orchestrator(container).run(RunRequest(
            overrides=overrides, parallel=parallel, dry_run=dry_run,
        ))
    except SuperbuildError as e:
        raise _diagnostic(e) from e

    plan = report.plan
    if plan is None:
        raise click.ClickException("未能生成构建计划")
    click.echo(f"安装根目录: {plan.install_prefix}")
    for item in plan.enabled:
        result = report.result(item.name)
        if result is None:
            click.echo(f"  {item.name:12s} 计划中")
            continue
        line = f"  {item.name:12s} {result.status.value:11s} {result.duration:6.1f}s"
        if not result.success:
            line += f"  {result.message.splitlines()[0] if result.message else ''}"
        click.echo(line)
    for item in plan.disabled:
        mark = "（已清理）" if item.name in report.cleaned else ""
        click.echo(f"  {item.name:12s} disabled{mark}")
    for name in plan.gated:
        click.echo(f"  {name:12s} gated")

    if report.failed:
        click.echo(f"失败: {', '.join(r.name for r in report.failed)}", err=True)
        sys.exit(1)
