"""superbuild 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
"""

import os
from typing import Any

import click

from superbuild import __version__
from superbuild.services.container import get_container
from superbuild.utils.logger import setup_logging


def _svc() -> Any:
    """获取全局服务容器的快捷方式"""
    return get_container()


def _parse_kv_pairs(pairs: tuple[str, ...]) -> dict[str, str]:
    """解析 -D KEY[:TYPE]=VALUE 参数对，类型标注被忽略"""
    result: dict[str, str] = {}
    for p in pairs:
        if "=" not in p:
            raise click.BadParameter(f"格式应为 KEY=VALUE: {p}", param_hint="-D")
        k, v = p.split("=", 1)
        k = k.strip().split(":", 1)[0]
        if not k:
            raise click.BadParameter(f"缺少参数名: {p}", param_hint="-D")
        result[k] = v.strip()
    return result


def _diagnostic(e: Exception) -> click.ClickException:
    """业务异常转为单条终端诊断，校验明细逐行附上"""
    from superbuild.core.exceptions import CycleError

    details = getattr(e, "details", None)
    if not details or isinstance(e, CycleError):
        return click.ClickException(str(e))
    lines = [str(e), *(f"  - {d}" for d in details)]
    return click.ClickException("\n".join(lines))


def _project_options(func: Any) -> Any:
    """configure / plan / deps 共用的目录与清单选项"""
    options = [
        click.option("--config", "-c", "config_path", default="configs/default.yml",
                     help="配置文件路径"),
        click.option("--manifest", "-m", default=None, help="依赖清单路径（默认使用内置清单）"),
        click.option("--source-dir", "-S", default=None, help="依赖源码根目录"),
        click.option("--binary-dir", "-B", default=None, help="依赖构建根目录（设置文件存放于此）"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _container_from_options(
    config_path: str, manifest: str | None,
    source_dir: str | None, binary_dir: str | None,
) -> Any:
    """按命令行选项构造配置并替换全局容器"""
    from superbuild.core.config import Config
    from superbuild.services.container import ServiceContainer, set_container

    cfg = Config.from_file(config_path)
    if manifest:
        cfg.manifest = manifest
    if source_dir:
        cfg.source_dir = source_dir
    if binary_dir:
        cfg.binary_dir = binary_dir
    set_container(ServiceContainer(config=cfg))
    return _svc()


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """superbuild - 第三方依赖超级构建工具"""
    setup_logging(
        level=os.getenv("SUPERBUILD_LOG_LEVEL", "INFO"),
        json_output=os.getenv("SUPERBUILD_LOG_JSON", "") == "1",
    )


# 注册各领域子命令
from superbuild.cli.cmd_configure import register as _reg_configure  # noqa: E402
from superbuild.cli.cmd_deps import register as _reg_deps  # noqa: E402

_reg_configure(main)
_reg_deps(main)
