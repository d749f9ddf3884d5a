"""Unit tests for result downloads.

WHY: A half-written audio file that looks complete is worse than no file.
These tests pin down that a file only appears once its stream finished,
and that multi-part results land under the right names.

HOW: A fake storage host (tests.conftest.file_server) serves bytes by URL
path. Failure cases use handlers that return errors or raise mid-request.

RULES:
- No "*.part" files survive any test
- The bearer token is never sent to storage hosts
"""

from __future__ import annotations

import asyncio

import httpx
import pytest

from kits_cli.api.downloader import ResultDownloader
from kits_cli.api.errors import DownloadError, InvalidRequestError

from tests.conftest import FakeAPI, file_server

VOCALS = b"vocals-audio-bytes" * 100
INSTRUMENTAL = b"instrumental-audio-bytes" * 100


def _download_many(server, outputs, dest_dir):
    async def _run():
        async with ResultDownloader(transport=server.transport()) as downloader:
            return await downloader.download_many(outputs, dest_dir)

    return asyncio.run(_run())


def _download_one(server, url, dest):
    async def _run():
        async with ResultDownloader(transport=server.transport()) as downloader:
            return await downloader.download_one(url, dest)

    return asyncio.run(_run())


class TestDownloadOne:
    def test_writes_bytes(self, tmp_path):
        server = file_server({"/out.wav": VOCALS})

        path = _download_one(server, "https://cdn.test/out.wav", tmp_path / "result.wav")

        assert path == tmp_path / "result.wav"
        assert path.read_bytes() == VOCALS
        assert list(tmp_path.glob("*.part")) == []

    def test_creates_parent_directory(self, tmp_path):
        server = file_server({"/out.wav": VOCALS})
        dest = tmp_path / "nested" / "dir" / "result.wav"

        _download_one(server, "https://cdn.test/out.wav", dest)

        assert dest.read_bytes() == VOCALS

    def test_http_error_raises_download_error(self, tmp_path):
        server = file_server({})

        with pytest.raises(DownloadError) as exc_info:
            _download_one(server, "https://cdn.test/gone.wav", tmp_path / "result.wav")

        assert exc_info.value.url == "https://cdn.test/gone.wav"
        assert exc_info.value.kind == "DownloadError"
        assert not (tmp_path / "result.wav").exists()
        assert list(tmp_path.glob("*.part")) == []

    def test_no_authorization_header(self, tmp_path):
        server = file_server({"/out.wav": VOCALS})

        _download_one(server, "https://cdn.test/out.wav", tmp_path / "result.wav")

        assert "Authorization" not in server.requests[0].headers

    def test_requires_context_manager(self, tmp_path):
        downloader = ResultDownloader()
        with pytest.raises(RuntimeError):
            asyncio.run(downloader.download_one("https://cdn.test/x", tmp_path / "x.wav"))


class TestDownloadMany:
    def test_writes_each_part_by_name(self, tmp_path):
        server = file_server({"/v.wav": VOCALS, "/i.wav": INSTRUMENTAL})
        dest = tmp_path / "out"

        paths = _download_many(server, {
            "vocals": "https://cdn.test/v.wav",
            "instrumental": "https://cdn.test/i.wav",
        }, dest)

        assert paths == {
            "vocals": dest / "vocals.wav",
            "instrumental": dest / "instrumental.wav",
        }
        assert (dest / "vocals.wav").read_bytes() == VOCALS
        assert (dest / "instrumental.wav").read_bytes() == INSTRUMENTAL
        assert sorted(p.name for p in dest.iterdir()) == ["instrumental.wav", "vocals.wav"]

    def test_empty_mapping(self, tmp_path):
        server = file_server({})
        assert _download_many(server, {}, tmp_path / "out") == {}
        assert (tmp_path / "out").is_dir()

    def test_failure_leaves_no_partial_files(self, tmp_path):
        def handler(request):
            if request.url.path == "/broken.wav":
                raise httpx.ReadError("connection reset", request=request)
            return httpx.Response(200, content=VOCALS)

        dest = tmp_path / "out"
        with pytest.raises(DownloadError):
            _download_many(FakeAPI(handler), {
                "vocals": "https://cdn.test/v.wav",
                "drums": "https://cdn.test/broken.wav",
            }, dest)

        assert not (dest / "drums.wav").exists()
        assert list(dest.glob("*.part")) == []

    def test_part_names_cannot_escape_directory(self, tmp_path):
        server = file_server({"/v.wav": VOCALS})
        dest = tmp_path / "out"

        paths = _download_many(server, {"../evil": "https://cdn.test/v.wav"}, dest)

        assert paths["../evil"].parent == dest

    def test_colliding_part_names_rejected_before_download(self, tmp_path):
        server = file_server({"/1.wav": VOCALS, "/2.wav": INSTRUMENTAL})
        dest = tmp_path / "out"

        with pytest.raises(InvalidRequestError) as exc_info:
            _download_many(server, {
                "a/b": "https://cdn.test/1.wav",
                "a_b": "https://cdn.test/2.wav",
            }, dest)

        assert "a_b.wav" in exc_info.value.message
        assert server.calls == 0
        assert not dest.exists()
