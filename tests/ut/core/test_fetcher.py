"""源码拉取器单元测试（不访问网络，不调用真实 git）"""

from __future__ import annotations

import io
import tarfile
from pathlib import Path

import pytest

from superbuild.core.dep.fetcher import SourceFetcher
from superbuild.core.dep.models import SourceLocator
from superbuild.core.exceptions import FetchError, ValidationError


class TestArchiveFetch:
    """归档下载 + 解压"""

    def test_download_and_unwrap_single_top_dir(self, tmp_path: Path, fake_download):
        url = "https://gitlab.com/libeigen/eigen/-/archive/3.3.7/eigen-3.3.7.zip"
        fake_download(url, {"CMakeLists.txt": "project(eigen)", "Eigen/Core": "//"},
                      top="eigen-3.3.7")
        src = tmp_path / "src" / "eigen"
        tmp = tmp_path / "bin" / "eigen" / "tmp"

        SourceFetcher().fetch("eigen", SourceLocator(url=url), src, tmp)

        assert (src / "CMakeLists.txt").read_text(encoding="utf-8") == "project(eigen)"
        assert (src / "Eigen" / "Core").exists()
        assert (tmp / "eigen-3.3.7.zip").exists()
        assert not (tmp / "extract").exists()

    def test_multiple_top_entries_not_unwrapped(self, tmp_path: Path, fake_download):
        url = "https://e/flat.zip"
        fake_download(url, {"bin/a.dll": "x", "include/a.h": "y"}, top="")
        src = tmp_path / "src" / "flat"
        SourceFetcher().fetch("flat", SourceLocator(url=url), src, tmp_path / "tmp")
        assert (src / "bin" / "a.dll").exists()
        assert (src / "include" / "a.h").exists()

    def test_refetch_replaces_source_dir(self, tmp_path: Path, fake_download):
        url = "https://e/pkg.zip"
        fake_download(url, {"new.txt": "1"})
        src = tmp_path / "src" / "pkg"
        src.mkdir(parents=True)
        (src / "stale.txt").write_text("old", encoding="utf-8")
        SourceFetcher().fetch("pkg", SourceLocator(url=url), src, tmp_path / "tmp")
        assert (src / "new.txt").exists()
        assert not (src / "stale.txt").exists()

    def test_cached_archive_reused(self, tmp_path: Path, fake_download):
        url = "https://e/pkg.zip"
        fake_download(url, {"a.txt": "1"})
        fetcher = SourceFetcher()
        fetcher.download("pkg", url, tmp_path / "tmp")
        fetcher.download("pkg", url, tmp_path / "tmp")
        assert fake_download.downloads == [url]

    def test_download_failure(self, tmp_path: Path, fake_download):
        with pytest.raises(FetchError, match="下载失败"):
            SourceFetcher().download("pkg", "https://e/missing.zip", tmp_path / "tmp")
        assert not (tmp_path / "tmp" / "missing.zip").exists()

    def test_non_http_scheme_rejected(self, tmp_path: Path, fake_download):
        with pytest.raises(ValidationError, match="不允许的 URL 协议"):
            SourceFetcher().download("pkg", "file:///etc/passwd", tmp_path / "tmp")
        assert fake_download.downloads == []

    @staticmethod
    def _tar_gz(tmp_path: Path) -> Path:
        archive = tmp_path / "pkg-1.0.tar.gz"
        with tarfile.open(archive, "w:gz") as tf:
            data = b"int main() {}"
            info = tarfile.TarInfo("pkg-1.0/main.c")
            info.size = len(data)
            tf.addfile(info, io.BytesIO(data))
        return archive

    def test_tar_gz(self, tmp_path: Path):
        src = tmp_path / "src" / "pkg"
        SourceFetcher().extract("pkg", self._tar_gz(tmp_path), src, tmp_path / "tmp")
        assert (src / "main.c").read_bytes() == b"int main() {}"

    def test_tar_on_interpreter_without_extraction_filter(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch,
    ):
        original = tarfile.TarFile.extractall

        def extractall(self, path=".", members=None, *, numeric_owner=False):
            return original(self, path, members, numeric_owner=numeric_owner)

        monkeypatch.delattr(tarfile, "data_filter")
        monkeypatch.setattr(tarfile.TarFile, "extractall", extractall)
        src = tmp_path / "src" / "pkg"
        SourceFetcher().extract("pkg", self._tar_gz(tmp_path), src, tmp_path / "tmp")
        assert (src / "main.c").read_bytes() == b"int main() {}"

    def test_corrupt_archive(self, tmp_path: Path):
        archive = tmp_path / "bad.tar.gz"
        archive.write_bytes(b"not an archive")
        with pytest.raises(FetchError, match="解压失败"):
            SourceFetcher().extract("bad", archive, tmp_path / "src", tmp_path / "tmp")


class TestGitFetch:
    """git 检出（假执行器）"""

    URL = "https://github.com/gabime/spdlog.git"

    def test_shallow_clone(self, tmp_path: Path, fake_executor):
        ws = tmp_path / "src" / "spdlog"
        SourceFetcher(executor=fake_executor).clone("spdlog", self.URL, "v1.4.1", ws)
        assert fake_executor.commands() == [
            f"git clone --depth 1 --branch v1.4.1 {self.URL} {ws}",
        ]

    def test_commit_pin_falls_back_to_full_clone(self, tmp_path: Path, fake_executor):
        fake_executor.fail_on["--branch"] = 128
        ws = tmp_path / "src" / "simbody"
        sha = "e855d954a786128c3271a3406d7bda782e7c4c4f"
        SourceFetcher(executor=fake_executor).clone("simbody", self.URL, sha, ws)
        cmds = fake_executor.commands()
        assert cmds[1] == f"git clone {self.URL} {ws}"
        assert cmds[2] == f"git checkout {sha}"
        assert fake_executor.calls[2][1] == str(ws)

    def test_existing_checkout_is_updated(self, tmp_path: Path, fake_executor):
        ws = tmp_path / "src" / "spdlog"
        (ws / ".git").mkdir(parents=True)
        SourceFetcher(executor=fake_executor, git_program="/usr/bin/git").clone(
            "spdlog", self.URL, "v1.4.1", ws,
        )
        assert fake_executor.commands() == [
            "/usr/bin/git fetch --depth 1 origin v1.4.1",
            "/usr/bin/git checkout FETCH_HEAD",
        ]

    def test_missing_revision(self, tmp_path: Path, fake_executor):
        fake_executor.fail_on["--branch"] = 128
        fake_executor.fail_on["checkout"] = 1
        with pytest.raises(FetchError, match="版本不存在"):
            SourceFetcher(executor=fake_executor).clone(
                "docopt", self.URL, "deadbeef", tmp_path / "src" / "docopt",
            )

    def test_unreachable_host(self, tmp_path: Path, fake_executor):
        fake_executor.fail_on["clone"] = 128
        with pytest.raises(FetchError, match="git clone 失败"):
            SourceFetcher(executor=fake_executor).clone(
                "docopt", self.URL, "v1", tmp_path / "src" / "docopt",
            )

    def test_unsafe_ref(self, tmp_path: Path, fake_executor):
        with pytest.raises(FetchError, match="非法字符"):
            SourceFetcher(executor=fake_executor).clone(
                "x", self.URL, "v1; rm -rf /", tmp_path / "x",
            )
        assert fake_executor.calls == []

    def test_head_commit(self, tmp_path: Path, fake_executor):
        fake_executor.stdout["rev-parse"] = "e855d954a786128c3271a3406d7bda782e7c4c4f\n"
        assert SourceFetcher(executor=fake_executor).head_commit(tmp_path) == "e855d954a786"
