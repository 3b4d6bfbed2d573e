"""CLI — 依赖查询命令"""

from __future__ import annotations

import click

from superbuild.cli import (
    _container_from_options,
    _diagnostic,
    _parse_kv_pairs,
    _project_options,
)
from superbuild.core.exceptions import SuperbuildError


def register(group: click.Group) -> None:
    group.add_command(list_deps)
    group.add_command(show_plan)


@click.command(name="deps")
@_project_options
@click.option("--all", "show_all", is_flag=True, help="同时显示高级依赖")
def list_deps(
    config_path: str, manifest: str | None, source_dir: str | None,
    binary_dir: str | None, show_all: bool,
) -> None:
    """列出声明的依赖及其当前开关"""
    from superbuild.core.planner import Planner

    c = _container_from_options(config_path, manifest, source_dir, binary_dir)
    try:
        m = c.registry.load()
        plan = Planner(m, c.settings, c.config, system=c.system).build()
    except SuperbuildError as e:
        raise _diagnostic(e) from e

    if not m.dependencies:
        click.echo("没有声明的依赖。")
        return
    rows = {r["name"]: r for r in c.registry.list_dependencies(m)}
    for spec in m.dependencies:
        if spec.advanced and not show_all:
            continue
        if spec.name in plan.gated:
            state = "gated"
        else:
            state = "ON" if plan.toggles.get(spec.toggle_name) else "OFF"
        row = rows[spec.name]
        gate = f" gate={row['gate']}" if row["gate"] else ""
        deps = f" depends={row['depends']}" if row["depends"] else ""
        click.echo(
            f"  {spec.name:12s} {state:6s} [{row['kind']:8s}] {row['source']}{deps}{gate}"
        )


@click.command(name="plan")
@_project_options
@click.option("-D", "defines", multiple=True, help="临时设置项（不写回设置文件）")
def show_plan(
    config_path: str, manifest: str | None, source_dir: str | None,
    binary_dir: str | None, defines: tuple[str, ...],
) -> None:
    """显示构建计划：启用顺序与每个依赖的配置参数"""
    from superbuild.core.planner import Planner, apply_overrides

    c = _container_from_options(config_path, manifest, source_dir, binary_dir)
    try:
        m = c.registry.load()
        apply_overrides(m, c.settings, _parse_kv_pairs(defines))
        plan = Planner(m, c.settings, c.config, system=c.system).build()
    except SuperbuildError as e:
        raise _diagnostic(e) from e

    click.echo(f"安装根目录: {plan.install_prefix}")
    if plan.build_type:
        click.echo(f"构建类型: {plan.build_type}")
    click.echo("启用（按构建顺序）:")
    for i, item in enumerate(plan.enabled, 1):
        pre = f" <- {', '.join(item.prerequisites)}" if item.prerequisites else ""
        click.echo(f"  {i}. {item.name} [{item.spec.kind}]{pre}")
        for arg in item.rendered_args():
            click.echo(f"       {arg}")
    if plan.disabled:
        click.echo(f"关闭: {', '.join(i.name for i in plan.disabled)}")
    if plan.gated:
        click.echo(f"未参与: {', '.join(plan.gated)}")
