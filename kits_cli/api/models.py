"""Kits API request and response dataclasses.

WHY: The Kits API returns loosely-typed JSON for jobs, voice models and
paginated lists, and the five job kinds live under five differently named
collections. Typed dataclasses and closed enums make those shapes explicit
and turn an unknown job kind into an immediate error instead of a silent
fallback.

HOW: JobKind and JobStatus are str enums. JobKind maps to its collection
path through an enum-keyed table that must cover every member. Job,
VoiceModel and Page have from_dict factories that parse raw API dicts.
JobRequest is the immutable input to the submitter.

RULES:
- Vendor status synonyms (pending, running) normalize to the four JobStatus values
- Unknown statuses normalize to PROCESSING (keep polling) with a warning
- A job resource without "status" is QUEUED
- Jobs are frozen; a status change means a new Job from a new fetch
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Generic, List, Mapping, Optional, Tuple, TypeVar

from kits_cli.api.errors import InvalidRequestError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class JobKind(str, enum.Enum):
    """The five kinds of asynchronous job the API runs."""

    VOICE_CONVERSION = "voice-conversion"
    TEXT_TO_SPEECH = "text-to-speech"
    VOCAL_SEPARATION = "vocal-separation"
    STEM_SPLIT = "stem-splitter"
    VOICE_BLEND = "voice-blender"

    @property
    def collection(self) -> str:
        """API collection path for this kind, e.g. ``/voice-conversions``."""
        return _COLLECTIONS[self]

    @property
    def label(self) -> str:
        return _LABELS[self]

    @classmethod
    def parse(cls, value: str) -> JobKind:
        """Return the kind for ``value`` or raise InvalidRequestError."""
        try:
            return cls(value)
        except ValueError:
            valid = ", ".join(k.value for k in cls)
            raise InvalidRequestError(
                f"Unknown job kind '{value}'. Expected one of: {valid}"
            ) from None


_COLLECTIONS: Dict[JobKind, str] = {
    JobKind.VOICE_CONVERSION: "/voice-conversions",
    JobKind.TEXT_TO_SPEECH: "/tts",
    JobKind.VOCAL_SEPARATION: "/vocal-separations",
    JobKind.STEM_SPLIT: "/stem-splitter",
    JobKind.VOICE_BLEND: "/voice-blender",
}

_LABELS: Dict[JobKind, str] = {
    JobKind.VOICE_CONVERSION: "Voice conversion",
    JobKind.TEXT_TO_SPEECH: "Text-to-speech",
    JobKind.VOCAL_SEPARATION: "Vocal separation",
    JobKind.STEM_SPLIT: "Stem splitting",
    JobKind.VOICE_BLEND: "Voice blending",
}

if set(_COLLECTIONS) != set(JobKind) or set(_LABELS) != set(JobKind):
    raise RuntimeError("JobKind tables must cover every kind")


class JobStatus(str, enum.Enum):
    """Normalized job state.

    RULES:
    - queued/processing are the only non-terminal states
    - completed/failed are terminal; a terminal job is never re-polled
    """

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)

    @classmethod
    def normalize(cls, raw: Optional[str]) -> JobStatus:
        if raw is None:
            return cls.QUEUED
        value = str(raw).strip().lower()
        if value in _STATUS_SYNONYMS:
            return _STATUS_SYNONYMS[value]
        logger.warning("Unknown job status %r, treating as processing", raw)
        return cls.PROCESSING


_STATUS_SYNONYMS: Dict[str, JobStatus] = {
    "queued": JobStatus.QUEUED,
    "pending": JobStatus.QUEUED,
    "processing": JobStatus.PROCESSING,
    "running": JobStatus.PROCESSING,
    "completed": JobStatus.COMPLETED,
    "failed": JobStatus.FAILED,
}


@dataclass(frozen=True)
class Job:
    """A snapshot of one remote job.

    WHY: The poller, the downloader and the CLI all need the same view of
    a job: where it is in its lifecycle and, once done, where its outputs
    live.

    HOW: Built from the vendor job resource by from_dict. Voice conversion,
    TTS and blending produce a single ``outputUrl``; separation and stem
    splitting produce an ``outputUrls`` mapping of part name to URL.

    RULES:
    - progress is 0–100 or None when the API does not report it
    - output_url and output_urls are both None until the job completes
    - timestamps are kept as the vendor's strings
    """

    id: str
    kind: JobKind
    status: JobStatus
    progress: Optional[float] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    error: Optional[str] = None
    output_url: Optional[str] = None
    output_urls: Optional[Dict[str, str]] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def has_output(self) -> bool:
        return bool(self.output_url or self.output_urls)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], kind: JobKind) -> Job:
        """Parse a Job from a raw API response dict.

        RULES:
        - A non-object body raises TypeError, a missing id KeyError
        - progress is coerced to float, ignored when not numeric
        """
        _require_mapping(data, "job")
        progress = data.get("progress")
        try:
            progress = float(progress) if progress is not None else None
        except (TypeError, ValueError):
            progress = None

        output_urls = data.get("outputUrls")
        if isinstance(output_urls, Mapping):
            output_urls = {str(k): str(v) for k, v in output_urls.items() if v}
        else:
            output_urls = None

        return cls(
            id=str(data["id"]),
            kind=kind,
            status=JobStatus.normalize(data.get("status")),
            progress=progress,
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
            error=data.get("error") or None,
            output_url=data.get("outputUrl") or None,
            output_urls=output_urls or None,
        )


@dataclass(frozen=True)
class JobRequest:
    """Everything needed to create one job. Immutable once built.

    RULES:
    - input_path is required for every kind except TEXT_TO_SPEECH
    - text is required for TEXT_TO_SPEECH only
    - model_ids holds one id for conversion/TTS, several for blending
    - weights pairs with model_ids for blending only
    - None options are omitted from the payload, never sent as null
    """

    kind: JobKind
    input_path: Optional[Path] = None
    text: Optional[str] = None
    model_ids: Tuple[str, ...] = ()
    weights: Tuple[float, ...] = ()
    conversion_strength: Optional[float] = None
    model_volume_mix: Optional[float] = None
    pitch_shift: Optional[float] = None
    output_format: Optional[str] = None
    preprocessing_effects: Optional[Dict[str, Any]] = None
    postprocessing_effects: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class VoiceModel:
    """A voice profile selectable as a conversion, TTS or blend target."""

    id: str
    name: str
    description: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    type: Optional[str] = None
    demo_url: Optional[str] = None
    image_url: Optional[str] = None
    is_usable: Optional[bool] = None
    language: Optional[str] = None
    gender: Optional[str] = None
    age: Optional[str] = None
    accent: Optional[str] = None
    style: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> VoiceModel:
        _require_mapping(data, "voice model")
        tags = data.get("tags") or []
        return cls(
            id=str(data["id"]),
            name=data.get("title") or data.get("name") or "Unnamed Model",
            description=data.get("description"),
            tags=[str(t) for t in tags] if isinstance(tags, list) else [],
            type=data.get("type"),
            demo_url=data.get("demoUrl"),
            image_url=data.get("imageUrl"),
            is_usable=data.get("isUsable"),
            language=data.get("language"),
            gender=data.get("gender"),
            age=data.get("age"),
            accent=data.get("accent"),
            style=data.get("style"),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of a list endpoint: ``{data: [...], meta: {...}}``."""

    items: List[T]
    current_page: int = 1
    last_page: int = 1
    total: int = 0
    per_page: int = 0

    @property
    def has_next(self) -> bool:
        return self.current_page < self.last_page

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        parse_item: Callable[[Mapping[str, Any]], T],
    ) -> Page[T]:
        """Parse ``{data: [...], meta: {...}}``.

        RULES:
        - A body that is not an object raises TypeError
        - Missing or null meta fields fall back to single-page defaults
        """
        _require_mapping(data, "page")
        raw_items = data.get("data") or []
        if not isinstance(raw_items, list):
            raise TypeError("page data must be a list")
        items = [parse_item(item) for item in raw_items]
        meta = data.get("meta") or {}
        _require_mapping(meta, "page meta")
        return cls(
            items=items,
            current_page=_as_int(meta.get("currentPage"), 1),
            last_page=_as_int(meta.get("lastPage"), 1),
            total=_as_int(meta.get("total"), len(items)),
            per_page=_as_int(meta.get("perPage"), len(items)),
        )


def _require_mapping(data: Any, what: str) -> None:
    if not isinstance(data, Mapping):
        raise TypeError(f"{what} must be an object, got {type(data).__name__}")


def _as_int(value: Any, default: int) -> int:
    """int(value), with None meaning ``default``. Garbage raises ValueError."""
    if value is None:
        return default
    return int(value)
