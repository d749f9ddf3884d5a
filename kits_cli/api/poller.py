"""Job status polling.

WHY: Jobs take from seconds to minutes server-side. The CLI has to wait
for a terminal state, show progress while it waits, and give up after a
bounded time instead of hanging forever.

HOW: poll() fetches the job's status from its kind's collection at a fixed
interval, hands every snapshot to an optional progress callback, and stops
on completed (return) or failed (raise). The vendor publishes no rate-limit
signal, so there is no backoff: the interval is constant.

RULES:
- At most MAX_POLL_ATTEMPTS (60) fetches, then PollTimeoutError
- No sleep after the final fetch
- failed → JobFailedError with the job's error, never retried
- HTTP 404 → JobNotFoundError, never retried
- Every other transport error propagates unchanged
- The progress callback sees every snapshot, terminal ones included
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from kits_cli.api.errors import APIServerError, JobFailedError, JobNotFoundError, PollTimeoutError
from kits_cli.api.models import Job, JobKind, JobStatus, Page
from kits_cli.api.transport import KitsTransport
from kits_cli.config import MAX_POLL_ATTEMPTS, POLL_INTERVAL_S

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[Job], None]


class JobPoller:
    """Reads job status and waits for jobs to finish.

    ``interval_s`` exists so tests can poll without sleeping; the attempt
    ceiling is fixed.
    """

    def __init__(self, transport: KitsTransport, interval_s: float = POLL_INTERVAL_S) -> None:
        self._transport = transport
        self._interval_s = interval_s

    async def fetch(self, job_id: str, kind: JobKind) -> Job:
        """Fetch one status snapshot. A 404 is reported as APIServerError."""
        resp = await self._transport.request("GET", f"{kind.collection}/{job_id}")
        if not isinstance(resp.data, dict):
            raise APIServerError(resp.status_code, "Unexpected job status response")
        return resp.parse(lambda body: Job.from_dict({"id": job_id, **body}, kind), "job status")

    async def list_jobs(self, kind: JobKind, page: int = 1, limit: int = 20) -> Page[Job]:
        resp = await self._transport.request(
            "GET", kind.collection, params={"page": page, "limit": limit}
        )
        return resp.parse(
            lambda body: Page.from_dict(body or {}, lambda item: Job.from_dict(item, kind)),
            "job list",
        )

    async def poll(
        self,
        job_id: str,
        kind: JobKind,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Job:
        """Poll until the job completes, fails, or the attempt ceiling is hit.

        Args:
            job_id: ID returned by the submitter.
            kind: Job kind, selects the collection to query.
            on_progress: Called with each fetched snapshot.

        Returns:
            The Job in COMPLETED state.
        """
        for attempt in range(1, MAX_POLL_ATTEMPTS + 1):
            try:
                job = await self.fetch(job_id, kind)
            except APIServerError as exc:
                if exc.status_code == 404:
                    raise JobNotFoundError(job_id) from exc
                raise

            logger.debug(
                "Poll %d/%d for %s job %s: %s (%s%%)",
                attempt, MAX_POLL_ATTEMPTS, kind.value, job_id,
                job.status.value, job.progress if job.progress is not None else "?",
            )
            if on_progress:
                on_progress(job)

            if job.status is JobStatus.COMPLETED:
                return job
            if job.status is JobStatus.FAILED:
                raise JobFailedError(job.error or "Unknown error", job_id=job_id)

            if attempt < MAX_POLL_ATTEMPTS:
                await asyncio.sleep(self._interval_s)

        raise PollTimeoutError(job_id, MAX_POLL_ATTEMPTS, self._interval_s)
