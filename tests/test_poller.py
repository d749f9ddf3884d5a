"""Unit tests for job status polling.

WHY: Polling is where the CLI spends most of its life. A bug here either
hangs the user's terminal forever, gives up on a job that would have
finished, or keeps hammering the API after the job already failed.

HOW: A FakeAPI answers GET {collection}/{id} from a scripted sequence of
job resources. Clients are built with poll_interval_s=0, so 60 attempts
run instantly.

RULES:
- The callback sees every fetched snapshot, in order
- Exactly MAX_POLL_ATTEMPTS fetches before PollTimeoutError
- failed and 404 stop polling after the fetch that reported them
"""

from __future__ import annotations

import asyncio

import httpx
import pytest

from kits_cli.api.errors import (
    APIServerError,
    JobFailedError,
    JobNotFoundError,
    NoResponseError,
    PollTimeoutError,
)
from kits_cli.api.models import JobKind, JobStatus
from kits_cli.config import MAX_POLL_ATTEMPTS

from tests.conftest import FakeAPI, job_response, make_client, sequence_handler


def _poll(api, job_id="job-1", kind=JobKind.VOICE_CONVERSION, on_progress=None):
    async def _run():
        async with make_client(api) as client:
            return await client.poll(job_id, kind, on_progress=on_progress)

    return asyncio.run(_run())


class TestPollSequence:
    def test_progress_sequence_until_completed(self):
        api = FakeAPI(sequence_handler([
            job_response(status="queued", progress=0),
            job_response(status="processing", progress=30),
            job_response(status="processing", progress=70),
            job_response(status="completed", progress=100, outputUrl="https://cdn.test/out.wav"),
        ]))
        seen = []

        job = _poll(api, on_progress=seen.append)

        assert job.status is JobStatus.COMPLETED
        assert job.output_url == "https://cdn.test/out.wav"
        assert api.calls == 4
        assert [j.status for j in seen] == [
            JobStatus.QUEUED,
            JobStatus.PROCESSING,
            JobStatus.PROCESSING,
            JobStatus.COMPLETED,
        ]
        assert [j.progress for j in seen] == [0, 30, 70, 100]

    def test_queries_collection_for_kind(self):
        api = FakeAPI(sequence_handler([job_response(job_id="abc", status="completed")]))

        _poll(api, job_id="abc", kind=JobKind.STEM_SPLIT)

        assert api.requests[0].method == "GET"
        assert api.requests[0].url.path == "/stem-splitter/abc"

    def test_vendor_synonyms_keep_polling(self):
        api = FakeAPI(sequence_handler([
            job_response(status="pending"),
            job_response(status="running"),
            job_response(status="completed"),
        ]))
        seen = []

        _poll(api, on_progress=seen.append)

        assert [j.status for j in seen] == [
            JobStatus.QUEUED,
            JobStatus.PROCESSING,
            JobStatus.COMPLETED,
        ]

    def test_works_without_callback(self):
        api = FakeAPI(sequence_handler([job_response(status="completed")]))
        assert _poll(api).status is JobStatus.COMPLETED


class TestPollTimeout:
    def test_gives_up_after_max_attempts(self):
        api = FakeAPI(lambda r: job_response(status="processing", progress=10))
        seen = []

        with pytest.raises(PollTimeoutError) as exc_info:
            _poll(api, on_progress=seen.append)

        assert api.calls == MAX_POLL_ATTEMPTS == 60
        assert len(seen) == 60
        assert exc_info.value.job_id == "job-1"
        assert exc_info.value.kind == "PollTimeout"

    def test_completes_on_last_attempt(self):
        responses = [job_response(status="processing") for _ in range(MAX_POLL_ATTEMPTS - 1)]
        responses.append(job_response(status="completed"))
        api = FakeAPI(sequence_handler(responses))

        job = _poll(api)

        assert job.status is JobStatus.COMPLETED
        assert api.calls == MAX_POLL_ATTEMPTS

    def test_no_sleep_after_final_fetch(self, monkeypatch):
        sleeps = []
        real_sleep = asyncio.sleep

        async def _fake_sleep(delay, *args, **kwargs):
            sleeps.append(delay)
            await real_sleep(0)

        monkeypatch.setattr("kits_cli.api.poller.asyncio.sleep", _fake_sleep)
        api = FakeAPI(lambda r: job_response(status="queued"))

        with pytest.raises(PollTimeoutError):
            _poll(api)

        assert len(sleeps) == MAX_POLL_ATTEMPTS - 1


class TestPollFailures:
    def test_failed_job_raises_with_server_message(self):
        api = FakeAPI(lambda r: job_response(status="failed", error="model unavailable"))

        with pytest.raises(JobFailedError) as exc_info:
            _poll(api)

        assert api.calls == 1
        assert exc_info.value.message == "model unavailable"
        assert exc_info.value.job_id == "job-1"
        assert str(exc_info.value) == "Job failed: model unavailable"

    def test_failed_job_without_error_text(self):
        api = FakeAPI(lambda r: job_response(status="failed"))

        with pytest.raises(JobFailedError) as exc_info:
            _poll(api)

        assert exc_info.value.message == "Unknown error"

    def test_404_is_job_not_found(self):
        api = FakeAPI(lambda r: httpx.Response(404, json={"message": "Not found"}))

        with pytest.raises(JobNotFoundError) as exc_info:
            _poll(api, job_id="xyz", kind=JobKind.VOICE_CONVERSION)

        assert api.calls == 1
        assert api.requests[0].url.path == "/voice-conversions/xyz"
        assert exc_info.value.job_id == "xyz"

    def test_server_error_propagates_unchanged(self):
        api = FakeAPI(lambda r: httpx.Response(500, json={"message": "boom"}))

        with pytest.raises(APIServerError) as exc_info:
            _poll(api)

        assert exc_info.value.status_code == 500
        assert api.calls == 1

    def test_network_error_propagates(self):
        def handler(request):
            raise httpx.RemoteProtocolError("Server disconnected", request=request)

        with pytest.raises(NoResponseError):
            _poll(FakeAPI(handler))

    def test_callback_sees_failed_snapshot(self):
        api = FakeAPI(sequence_handler([
            job_response(status="processing"),
            job_response(status="failed", error="bad audio"),
        ]))
        seen = []

        with pytest.raises(JobFailedError):
            _poll(api, on_progress=seen.append)

        assert [j.status for j in seen] == [JobStatus.PROCESSING, JobStatus.FAILED]
