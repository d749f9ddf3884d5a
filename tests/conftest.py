"""Shared test fixtures for the kits_cli test suite.

WHY: Almost every test needs a client wired to a fake API, a fake storage
host for downloads, and an input audio file. Centralizing them keeps the
tests focused on behaviour.

HOW: The fake API is an httpx.MockTransport around a handler function.
FakeAPI records every request so tests can assert on call counts and
payloads. Downloads use a second MockTransport.

RULES:
- No test touches the network or the real ~/.kits-cli directory
- KITS_API_KEY is cleared and KITS_CONFIG_DIR points at tmp_path for every test
- Clients are built with poll_interval_s=0 so polling never sleeps
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional

import httpx
import pytest

from kits_cli.api.client import KitsClient
from kits_cli.config import StaticCredential

API_BASE = "https://api.test"


class FakeAPI:
    """Records requests and answers them with a handler."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.handler = handler
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    @property
    def calls(self) -> int:
        return len(self.requests)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def job_response(job_id: str = "job-1", status: str = "queued", **extra) -> httpx.Response:
    body = {"id": job_id, "status": status}
    body.update(extra)
    return httpx.Response(200, json=body)


def sequence_handler(responses: List[httpx.Response]) -> Callable[[httpx.Request], httpx.Response]:
    """Answer each request with the next response; repeat the last one."""
    remaining = list(responses)

    def handler(request: httpx.Request) -> httpx.Response:
        if len(remaining) > 1:
            return remaining.pop(0)
        return remaining[0]

    return handler


def make_client(
    api: FakeAPI,
    downloads: Optional[FakeAPI] = None,
    token: str = "test-key",
) -> KitsClient:
    return KitsClient(
        StaticCredential(token),
        base_url=API_BASE,
        transport=api.transport(),
        download_transport=downloads.transport() if downloads else None,
        poll_interval_s=0,
    )


def file_server(files: Dict[str, bytes]) -> FakeAPI:
    """A fake storage host serving ``files`` keyed by URL path."""

    def handler(request: httpx.Request) -> httpx.Response:
        body = files.get(request.url.path)
        if body is None:
            return httpx.Response(404, text="not found")
        return httpx.Response(200, content=body)

    return FakeAPI(handler)


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch, tmp_path):
    """Keep tests away from the user's real key and config file."""
    monkeypatch.delenv("KITS_API_KEY", raising=False)
    monkeypatch.setenv("KITS_CONFIG_DIR", str(tmp_path / "kits-config"))


@pytest.fixture
def audio_file(tmp_path):
    """A small fake WAV file."""
    path = tmp_path / "input.wav"
    path.write_bytes(b"RIFF" + b"\x00" * 256)
    return path
