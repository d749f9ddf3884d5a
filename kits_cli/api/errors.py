"""Typed error taxonomy for the Kits API client.

WHY: Callers (CLI, interactive mode, tests) need to tell a bad local
argument from a dropped connection from a job the server rejected, and the
user needs to see which of these happened. Raw httpx exceptions leak
transport internals and don't carry that classification.

HOW: One base class, KitsError, with a class-level ``kind`` tag. Each
failure mode is a subclass carrying the fields that describe it. The
transport maps httpx exceptions onto these; the submitter, poller and
downloader raise the job-level ones.

RULES:
- Every error raised out of kits_cli.api is a KitsError
- ``kind`` matches the taxonomy names shown to users (e.g. "ServerError")
- ``message`` is the human-readable detail without the kind prefix
"""

from __future__ import annotations


class KitsError(Exception):
    """Base class for all client errors."""

    kind = "Error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


# ---------------------------------------------------------------------------
# Local precondition failures (never reach the network)
# ---------------------------------------------------------------------------


class InvalidRequestError(KitsError):
    """Raised when a job request fails local validation.

    RULES:
    - Raised before any network call or upload
    - reason is the user-facing explanation
    """

    kind = "InvalidRequest"

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class PayloadTooLargeError(KitsError):
    """Raised when an upload exceeds the size ceiling."""

    kind = "PayloadTooLarge"

    def __init__(self, size_mb: float, limit_mb: float = 100.0) -> None:
        self.size_mb = size_mb
        self.limit_mb = limit_mb
        super().__init__(
            f"File size ({size_mb:.2f}MB) exceeds the maximum limit of {limit_mb:.0f}MB"
        )


class MissingCredentialError(KitsError):
    kind = "MissingCredential"

    def __init__(self) -> None:
        super().__init__(
            'No API key found. Run "kits-cli setup" or set KITS_API_KEY.'
        )


# ---------------------------------------------------------------------------
# Transport failures
# ---------------------------------------------------------------------------


class TransportError(KitsError):
    """Base for failures surfaced by the transport layer."""

    kind = "TransportError"


class APITimeoutError(TransportError):
    kind = "Timeout"


class ConnectionRefusedAPIError(TransportError):
    kind = "ConnectionRefused"


class HostUnresolvedError(TransportError):
    kind = "HostUnresolved"


class NoResponseError(TransportError):
    kind = "NoResponse"


class APIServerError(TransportError):
    """Raised when the Kits API answers with a non-2xx status.

    WHY: Callers need the status code to translate some failures (a 404
    while polling means the job does not exist).

    RULES:
    - status_code is the HTTP status
    - message is the body's "message" or "error" field, else a generic string
    """

    kind = "ServerError"

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        super().__init__(message)

    def __str__(self) -> str:
        return f"API error ({self.status_code}): {self.message}"


# ---------------------------------------------------------------------------
# Job lifecycle failures
# ---------------------------------------------------------------------------


class JobNotFoundError(KitsError):
    kind = "JobNotFound"

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")


class JobFailedError(KitsError):
    """Raised when the server reports a job as failed. Never retried."""

    kind = "JobFailed"

    def __init__(self, message: str, job_id: str | None = None) -> None:
        self.job_id = job_id
        super().__init__(message)

    def __str__(self) -> str:
        return f"Job failed: {self.message}"


class PollTimeoutError(KitsError):
    """Raised when a job is still unfinished after the poll ceiling."""

    kind = "PollTimeout"

    def __init__(self, job_id: str, attempts: int, interval_s: float) -> None:
        self.job_id = job_id
        self.attempts = attempts
        super().__init__(
            f"Job {job_id} still not finished after {attempts} status checks "
            f"(~{attempts * interval_s / 60:.0f} minutes). "
            f'Check again later with "kits-cli status {job_id}".'
        )


class DownloadError(KitsError):
    """Raised when a result file cannot be fetched or written."""

    kind = "DownloadError"

    def __init__(self, url: str, cause: BaseException) -> None:
        self.url = url
        self.cause = cause
        super().__init__(f"Failed to download {url}: {cause}")
