"""Kits API client package: async HTTP interface to the Kits AI job API.

WHY: The CLI needs to create audio jobs, wait for them, download their
results and browse voice models. This package keeps all of that behind a
few classes so the presentation layer never touches HTTP.

HOW: Uses httpx.AsyncClient for non-blocking HTTP. KitsTransport handles
auth and error classification; JobSubmitter, JobPoller and ResultDownloader
implement the three workflow stages; KitsClient composes them.

RULES:
- All HTTP calls go through KitsTransport or ResultDownloader
- Authentication is a bearer token from a CredentialSource
- Every raised error is a kits_cli.api.errors.KitsError
"""

from kits_cli.api.client import KitsClient
from kits_cli.api.errors import KitsError
from kits_cli.api.models import Job, JobKind, JobRequest, JobStatus, Page, VoiceModel

__all__ = [
    "Job",
    "JobKind",
    "JobRequest",
    "JobStatus",
    "KitsClient",
    "KitsError",
    "Page",
    "VoiceModel",
]
