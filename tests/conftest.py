"""公共测试夹具

- FakeExecutor: 记录命令的假执行器，不调用真实的 cmake / git / make
- fake_download: 替换 urllib 下载，按 URL 返回本地构造的 zip 归档
"""

from __future__ import annotations

import re
import shlex
import shutil
import threading
import time
import urllib.error
import urllib.request
import zipfile
from pathlib import Path

import pytest

from superbuild.services.container import reset_container
from superbuild.utils.logger import reset_logging
from superbuild.utils.shell import CommandResult

_PREFIX_RE = re.compile(r'set\(CMAKE_INSTALL_PREFIX "(?P<path>[^"]*)"')


class FakeExecutor:
    """按子串匹配模拟失败与延迟；命令在完成时记录，便于断言先后顺序

    - git clone: 创建目标目录（含 .git）模拟检出
    - cmake --build . --target install: 从初始缓存脚本读取安装路径并写入一个文件
    """

    def __init__(self) -> None:
        self.calls: list[tuple[list[str], str]] = []
        self.fail_on: dict[str, int] = {}
        self.delays: dict[str, float] = {}
        self.stdout: dict[str, str] = {}
        self._lock = threading.Lock()

    def execute(self, cmd, *, cwd=".", env=None, timeout=None) -> CommandResult:
        argv = shlex.split(cmd) if isinstance(cmd, str) else list(cmd)
        text = " ".join(argv)
        for key, delay in self.delays.items():
            if key in text:
                time.sleep(delay)
        with self._lock:
            self.calls.append((argv, cwd))
        for key, rc in self.fail_on.items():
            if key in text:
                return CommandResult(returncode=rc, stdout="", stderr=f"模拟失败: {key}\n")

        if argv[1:2] == ["clone"]:
            target = Path(argv[-1])
            (target / ".git").mkdir(parents=True, exist_ok=True)
            (target / "CMakeLists.txt").write_text("project(x)\n", encoding="utf-8")
        if "--target" in argv and "install" in argv:
            self._fake_install(Path(cwd))
        out = next((v for k, v in self.stdout.items() if k in text), "ok\n")
        return CommandResult(returncode=0, stdout=out, stderr="")

    @staticmethod
    def _fake_install(build_dir: Path) -> None:
        name = build_dir.parent.name
        for cache in (build_dir.parent / "tmp").glob(f"{name}-cache-*.cmake"):
            m = _PREFIX_RE.search(cache.read_text(encoding="utf-8"))
            if m:
                lib = Path(m.group("path")) / "lib"
                lib.mkdir(parents=True, exist_ok=True)
                (lib / f"lib{name}.a").write_text("bin", encoding="utf-8")

    def commands(self, contains: str = "") -> list[str]:
        return [" ".join(argv) for argv, _ in self.calls if contains in " ".join(argv)]

    def index(self, *fragments: str) -> int:
        """第一条同时包含所有片段（命令或工作目录）的调用位置，不存在返回 -1"""
        for i, (argv, cwd) in enumerate(self.calls):
            text = " ".join(argv) + " @ " + str(cwd)
            if all(f in text for f in fragments):
                return i
        return -1


@pytest.fixture()
def fake_executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture()
def fake_download(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """注册 URL -> 归档内容；返回 register(url, files, top) 函数"""
    archives: dict[str, Path] = {}
    downloads: list[str] = []

    def register(url: str, files: dict[str, str], top: str = "pkg-1.0") -> Path:
        path = tmp_path / "_archives" / url.rsplit("/", 1)[-1]
        path.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(path, "w") as zf:
            for rel, content in files.items():
                zf.writestr(f"{top}/{rel}" if top else rel, content)
        archives[url] = path
        return path

    def urlretrieve(url: str, filename: str):
        downloads.append(url)
        if url not in archives:
            raise urllib.error.URLError("not found")
        shutil.copyfile(archives[url], filename)
        return filename, None

    monkeypatch.setattr(urllib.request, "urlretrieve", urlretrieve)
    register.downloads = downloads  # type: ignore[attr-defined]
    return register


@pytest.fixture(autouse=True)
def _isolate_globals():
    """每个用例结束后清理全局容器与日志 handler"""
    yield
    reset_container()
    reset_logging()
