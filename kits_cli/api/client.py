"""Async client facade for the Kits AI API.

WHY: Callers (CLI, interactive mode, tests) want one object that covers
the whole workflow (submit, poll, download) plus the read-only voice
model catalog, without wiring the transport, submitter, poller and
downloader together themselves.

HOW: KitsClient is an async context manager. Entering it opens the API
transport and the download client; the component objects are exposed as
attributes and the common calls are forwarded as methods.

RULES:
- Use as: async with KitsClient(credentials) as client: ...
- credentials is a CredentialSource; it is read once, on construction
- find_job tries every JobKind in declaration order, skipping 404s
- No state survives the context: jobs are not cached or persisted
"""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack
from pathlib import Path
from typing import Dict, Mapping, Optional, Sequence

import httpx

from kits_cli.api.downloader import ResultDownloader
from kits_cli.api.errors import APIServerError, JobNotFoundError
from kits_cli.api.models import Job, JobKind, JobRequest, Page, VoiceModel
from kits_cli.api.poller import JobPoller, ProgressCallback
from kits_cli.api.submitter import JobSubmitter
from kits_cli.api.transport import KitsTransport
from kits_cli.config import POLL_INTERVAL_S, CredentialSource

logger = logging.getLogger(__name__)


class KitsClient:
    """Async client for the Kits AI job API.

    Args:
        credentials: Source of the API key.
        base_url: API base URL; defaults to KITS_BASE_URL.
        transport: httpx transport for API calls (tests pass MockTransport).
        download_transport: httpx transport for result downloads.
        poll_interval_s: Seconds between status fetches.
    """

    def __init__(
        self,
        credentials: CredentialSource,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        download_transport: Optional[httpx.AsyncBaseTransport] = None,
        poll_interval_s: float = POLL_INTERVAL_S,
    ) -> None:
        self.transport = KitsTransport(credentials, base_url=base_url, transport=transport)
        self.submitter = JobSubmitter(self.transport)
        self.poller = JobPoller(self.transport, interval_s=poll_interval_s)
        self.downloader = ResultDownloader(transport=download_transport)
        self._stack: Optional[AsyncExitStack] = None

    async def __aenter__(self) -> KitsClient:
        stack = AsyncExitStack()
        await stack.enter_async_context(self.transport)
        await stack.enter_async_context(self.downloader)
        self._stack = stack
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._stack:
            await self._stack.aclose()
            self._stack = None

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    async def submit(self, request: JobRequest) -> Job:
        return await self.submitter.submit(request)

    async def poll(
        self,
        job_id: str,
        kind: JobKind,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Job:
        return await self.poller.poll(job_id, kind, on_progress=on_progress)

    async def run_job(
        self,
        request: JobRequest,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Job:
        """Submit ``request`` and wait for it to complete."""
        job = await self.submitter.submit(request)
        return await self.poller.poll(job.id, job.kind, on_progress=on_progress)

    async def get_job(self, job_id: str, kind: JobKind) -> Job:
        """Fetch one snapshot; 404 becomes JobNotFoundError."""
        try:
            return await self.poller.fetch(job_id, kind)
        except APIServerError as exc:
            if exc.status_code == 404:
                raise JobNotFoundError(job_id) from exc
            raise

    async def list_jobs(self, kind: JobKind, page: int = 1, limit: int = 20) -> Page[Job]:
        return await self.poller.list_jobs(kind, page=page, limit=limit)

    async def find_job(
        self,
        job_id: str,
        kinds: Sequence[JobKind] = tuple(JobKind),
    ) -> Job:
        """Locate a job whose kind is unknown by trying each collection.

        RULES:
        - A 404 from one collection moves on to the next
        - Any other error stops the search and propagates
        - JobNotFoundError when no collection knows the id
        """
        for kind in kinds:
            try:
                return await self.poller.fetch(job_id, kind)
            except APIServerError as exc:
                if exc.status_code != 404:
                    raise
                logger.debug("Job %s not in %s", job_id, kind.collection)
        raise JobNotFoundError(job_id)

    # ------------------------------------------------------------------
    # Downloads
    # ------------------------------------------------------------------

    async def download_one(self, url: str, dest_path: Path) -> Path:
        return await self.downloader.download_one(url, dest_path)

    async def download_many(self, outputs: Mapping[str, str], dest_dir: Path) -> Dict[str, Path]:
        return await self.downloader.download_many(outputs, dest_dir)

    # ------------------------------------------------------------------
    # Voice models
    # ------------------------------------------------------------------

    async def list_voice_models(self, page: int = 1, limit: int = 20) -> Page[VoiceModel]:
        resp = await self.transport.request(
            "GET", "/voice-models", params={"page": page, "limit": limit}
        )
        return resp.parse(
            lambda body: Page.from_dict(body or {}, VoiceModel.from_dict), "voice model list"
        )

    async def get_voice_model(self, model_id: str) -> VoiceModel:
        resp = await self.transport.request("GET", f"/voice-models/{model_id}")
        if not isinstance(resp.data, dict):
            raise APIServerError(resp.status_code, "Unexpected voice model response")
        return resp.parse(lambda body: VoiceModel.from_dict({"id": model_id, **body}), "voice model")
