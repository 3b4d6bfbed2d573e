"""superbuild - 第三方原生依赖的下载、配置、编译与安装编排"""

__version__ = "0.3.0"
