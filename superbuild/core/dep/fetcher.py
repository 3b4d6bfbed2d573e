"""源码拉取器

职责:
- 归档下载（http/https）+ 解压（zip / tar.*），单一顶层目录自动展开
- Git 仓库 clone（浅克隆优先，提交号回退完整克隆）/ 已有检出时 fetch + checkout
- 所有 git 调用走 CommandExecutor，测试可注入假执行器
"""

from __future__ import annotations

import logging
import re
import shutil
import tarfile
import urllib.error
import urllib.request
import zipfile
from pathlib import Path

from superbuild.core.dep.models import SourceLocator
from superbuild.core.exceptions import ExecutionError, FetchError
from superbuild.utils.net import archive_filename, validate_url_scheme
from superbuild.utils.shell import CommandExecutor, CommandResult, get_executor, run_cmd

logger = logging.getLogger(__name__)

_SAFE_REF_RE = re.compile(r"^[a-zA-Z0-9_./@\-]+$")


def _restore_zip_modes(zf: zipfile.ZipFile, dest: Path) -> None:
    """zipfile 不保留权限位，configure 之类的脚本需要恢复可执行权限"""
    for info in zf.infolist():
        mode = (info.external_attr >> 16) & 0o777
        target = dest / info.filename
        if mode and target.is_file():
            target.chmod(mode)


class SourceFetcher:
    """依赖源码拉取器"""

    def __init__(
        self,
        executor: CommandExecutor | None = None,
        git_program: str = "git",
        timeout: int | None = None,
    ) -> None:
        self._executor = executor
        self.git_program = git_program
        self.timeout = timeout

    @property
    def executor(self) -> CommandExecutor:
        return self._executor or get_executor()

    def fetch(self, name: str, source: SourceLocator, source_dir: Path, tmp_dir: Path) -> Path:
        """把 name 的源码放到 source_dir，返回 source_dir"""
        if source.is_git:
            self.clone(name, source.git_url, source.git_tag, source_dir)
        else:
            archive = self.download(name, source.url, tmp_dir)
            self.extract(name, archive, source_dir, tmp_dir)
        return source_dir

    # ------------------------------------------------------------------
    # 归档
    # ------------------------------------------------------------------

    def download(self, name: str, url: str, dest_dir: Path) -> Path:
        """下载归档到 dest_dir，已存在则直接复用"""
        validate_url_scheme(url, context=f"{name} 源码下载")
        dest = dest_dir / archive_filename(url)
        dest.parent.mkdir(parents=True, exist_ok=True)
        if dest.exists() and dest.stat().st_size > 0:
            logger.info("  [%s] 归档缓存命中: %s", name, dest)
            return dest

        logger.info("  [%s] 下载: %s", name, url)
        try:
            urllib.request.urlretrieve(url, str(dest))  # nosec B310
        except (urllib.error.HTTPError, urllib.error.URLError, OSError) as e:
            dest.unlink(missing_ok=True)
            raise FetchError(f"依赖 {name} 下载失败: {url} - {e}") from e
        logger.info("  [%s] 已保存: %s", name, dest)
        return dest

    def extract(self, name: str, archive: Path, source_dir: Path, tmp_dir: Path) -> None:
        """解压归档到 source_dir，归档内只有一个顶层目录时展开该目录"""
        staging = tmp_dir / "extract"
        if staging.exists():
            shutil.rmtree(staging)
        staging.mkdir(parents=True)

        try:
            if zipfile.is_zipfile(archive):
                with zipfile.ZipFile(archive) as zf:
                    zf.extractall(staging)
                    _restore_zip_modes(zf, staging)
            else:
                # 旧补丁版本的 tarfile 没有 filter 参数
                extra = {"filter": "data"} if hasattr(tarfile, "data_filter") else {}
                with tarfile.open(archive) as tf:
                    tf.extractall(path=str(staging), **extra)  # noqa: S202
        except (OSError, zipfile.BadZipFile, tarfile.TarError) as e:
            raise FetchError(f"依赖 {name} 解压失败: {archive} - {e}") from e

        entries = list(staging.iterdir())
        root = entries[0] if len(entries) == 1 and entries[0].is_dir() else staging

        if source_dir.exists():
            shutil.rmtree(source_dir)
        source_dir.parent.mkdir(parents=True, exist_ok=True)
        if root is staging:
            shutil.move(str(staging), str(source_dir))
        else:
            shutil.move(str(root), str(source_dir))
            shutil.rmtree(staging, ignore_errors=True)
        logger.info("  [%s] 已解压: %s -> %s", name, archive.name, source_dir)

    # ------------------------------------------------------------------
    # Git
    # ------------------------------------------------------------------

    def _git(self, args: list[str], cwd: Path | str = ".") -> CommandResult:
        return run_cmd(
            [self.git_program, *args], cwd=str(cwd), label=f"git {args[0]}",
            timeout=self.timeout, executor=self.executor,
        )

    def clone(self, name: str, url: str, ref: str, workspace: Path) -> None:
        """检出 url@ref 到 workspace"""
        if not _SAFE_REF_RE.match(ref):
            raise FetchError(f"依赖 {name} 的 git_tag 包含非法字符: {ref}")

        if (workspace / ".git").exists():
            logger.info("  [%s] 更新仓库: %s@%s", name, url, ref)
            try:
                self._git(["fetch", "--depth", "1", "origin", ref], cwd=workspace)
                self._git(["checkout", "FETCH_HEAD"], cwd=workspace)
            except ExecutionError as e:
                raise FetchError(f"依赖 {name} 更新失败: {url}@{ref} - {e}") from e
            return

        logger.info("  [%s] 克隆仓库: %s@%s -> %s", name, url, ref, workspace)
        workspace.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._git(["clone", "--depth", "1", "--branch", ref, url, str(workspace)])
            return
        except ExecutionError:
            logger.debug("  [%s] 浅克隆失败，%s 可能是提交号", name, ref)

        # 提交号不能用 --branch，回退到完整克隆 + checkout
        if workspace.exists():
            shutil.rmtree(workspace)
        try:
            self._git(["clone", url, str(workspace)])
        except ExecutionError as e:
            raise FetchError(f"依赖 {name} git clone 失败: {url} - {e}") from e
        try:
            self._git(["checkout", ref], cwd=workspace)
        except ExecutionError as e:
            raise FetchError(f"依赖 {name} 的版本不存在: {url}@{ref}") from e

    def head_commit(self, workspace: Path) -> str:
        """当前检出的提交号（前 12 位），失败返回空字符串"""
        r = self.executor.execute(
            [self.git_program, "rev-parse", "HEAD"], cwd=str(workspace),
        )
        return r.stdout.strip()[:12] if r.success else ""
