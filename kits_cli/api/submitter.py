"""Job submission: local validation plus one multipart POST per job.

WHY: Uploads are slow and vendor rejections are vague, so anything we can
check locally (file exists, size ceiling, blend weights) must be checked
before a byte leaves the machine. Each job kind also has its own form
fields, and absent options must be omitted rather than sent empty.

HOW: JobSubmitter.submit() looks up a payload builder for the request's
kind in an enum-keyed table. The builder validates and returns the form
fields plus the file to upload (if any). submit() then opens the file,
issues exactly one transport call and parses the response into a Job.

RULES:
- All validation happens before the network call
- Blend: len(model_ids) == len(weights), every weight in [0, 1]
- Uploads over 100 MiB raise PayloadTooLargeError without a request
- An unreadable input file raises InvalidRequestError without a request
- Optional fields are omitted when None; effects and id lists are JSON-encoded
- A response without an "id" raises APIServerError (no partial job)
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple

from kits_cli.api.errors import APIServerError, InvalidRequestError, PayloadTooLargeError
from kits_cli.api.models import Job, JobKind, JobRequest
from kits_cli.api.transport import KitsTransport
from kits_cli.config import MAX_UPLOAD_BYTES, UPLOAD_TIMEOUT_S

logger = logging.getLogger(__name__)

# (form fields, file to upload or None)
Payload = Tuple[Dict[str, str], Optional[Path]]


class JobSubmitter:
    """Creates remote jobs from JobRequests."""

    def __init__(self, transport: KitsTransport) -> None:
        self._transport = transport

    async def submit(self, request: JobRequest) -> Job:
        """Validate ``request`` and create the remote job.

        Returns:
            The created Job, normally in QUEUED state.

        Raises:
            InvalidRequestError, PayloadTooLargeError before any network
            call; any transport error from the POST itself.
        """
        builder = _PAYLOAD_BUILDERS[request.kind]
        fields, upload = builder(request)

        path = request.kind.collection
        if upload is None:
            # TTS has no binary part but the endpoint still expects multipart
            files = {name: (None, value) for name, value in fields.items()}
            resp = await self._transport.request("POST", path, files=files)
        else:
            try:
                f = open(upload, "rb")
            except OSError as e:
                raise InvalidRequestError(f"Cannot read input file {upload}: {e}") from e
            with f:
                resp = await self._transport.request(
                    "POST",
                    path,
                    data=fields,
                    files={"soundFile": (upload.name, f)},
                    timeout=UPLOAD_TIMEOUT_S,
                )

        body = resp.data
        if not isinstance(body, Mapping) or not body.get("id"):
            raise APIServerError(resp.status_code, "Response did not include a job id")

        job = resp.parse(lambda data: Job.from_dict(data, request.kind), "job creation")
        logger.info("Created %s job %s (status: %s)", request.kind.value, job.id, job.status.value)
        return job

    # ------------------------------------------------------------------
    # Kind-specific entry points
    # ------------------------------------------------------------------

    async def submit_voice_conversion(
        self,
        input_path: Path,
        model_id: str,
        conversion_strength: Optional[float] = None,
        model_volume_mix: Optional[float] = None,
        pitch_shift: Optional[float] = None,
        preprocessing_effects: Optional[Dict[str, Any]] = None,
        postprocessing_effects: Optional[Dict[str, Any]] = None,
    ) -> Job:
        return await self.submit(JobRequest(
            kind=JobKind.VOICE_CONVERSION,
            input_path=Path(input_path),
            model_ids=(model_id,),
            conversion_strength=conversion_strength,
            model_volume_mix=model_volume_mix,
            pitch_shift=pitch_shift,
            preprocessing_effects=preprocessing_effects,
            postprocessing_effects=postprocessing_effects,
        ))

    async def submit_tts(
        self,
        text: str,
        model_id: str,
        preprocessing_effects: Optional[Dict[str, Any]] = None,
        postprocessing_effects: Optional[Dict[str, Any]] = None,
    ) -> Job:
        return await self.submit(JobRequest(
            kind=JobKind.TEXT_TO_SPEECH,
            text=text,
            model_ids=(model_id,),
            preprocessing_effects=preprocessing_effects,
            postprocessing_effects=postprocessing_effects,
        ))

    async def submit_vocal_separation(
        self,
        input_path: Path,
        output_format: Optional[str] = None,
    ) -> Job:
        return await self.submit(JobRequest(
            kind=JobKind.VOCAL_SEPARATION,
            input_path=Path(input_path),
            output_format=output_format,
        ))

    async def submit_stem_split(
        self,
        input_path: Path,
        output_format: Optional[str] = None,
    ) -> Job:
        return await self.submit(JobRequest(
            kind=JobKind.STEM_SPLIT,
            input_path=Path(input_path),
            output_format=output_format,
        ))

    async def submit_voice_blend(
        self,
        input_path: Path,
        model_ids: Sequence[str],
        weights: Sequence[float],
        preprocessing_effects: Optional[Dict[str, Any]] = None,
        postprocessing_effects: Optional[Dict[str, Any]] = None,
    ) -> Job:
        return await self.submit(JobRequest(
            kind=JobKind.VOICE_BLEND,
            input_path=Path(input_path),
            model_ids=tuple(model_ids),
            weights=tuple(weights),
            preprocessing_effects=preprocessing_effects,
            postprocessing_effects=postprocessing_effects,
        ))


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def check_upload(input_path: Optional[Path]) -> Path:
    """Validate an upload candidate and return it as a Path.

    RULES:
    - Missing or non-file path → InvalidRequestError
    - Size > MAX_UPLOAD_BYTES → PayloadTooLargeError(size_mb)
    """
    if input_path is None:
        raise InvalidRequestError("An input audio file is required")
    path = Path(input_path)
    try:
        found = path.is_file()
        size = path.stat().st_size if found else 0
    except OSError as e:
        raise InvalidRequestError(f"Cannot read input file {path}: {e}") from e
    if not found:
        raise InvalidRequestError(f"Audio file not found: {path}")
    if size > MAX_UPLOAD_BYTES:
        raise PayloadTooLargeError(
            size / (1024 * 1024), limit_mb=MAX_UPLOAD_BYTES / (1024 * 1024)
        )
    return path


def check_blend(model_ids: Sequence[str], weights: Sequence[float]) -> None:
    if len(model_ids) < 1:
        raise InvalidRequestError("At least one voice model id is required for blending")
    if len(model_ids) != len(weights):
        raise InvalidRequestError(
            "Number of model IDs ({}) must match number of weights ({})".format(
                len(model_ids), len(weights)
            )
        )
    for w in weights:
        if not 0.0 <= w <= 1.0:
            raise InvalidRequestError(f"All weights must be between 0 and 1 (got {w})")


def _single_model_id(request: JobRequest) -> str:
    if len(request.model_ids) != 1 or not request.model_ids[0]:
        raise InvalidRequestError("Exactly one voice model id is required")
    return request.model_ids[0]


def _put(fields: Dict[str, str], name: str, value: Any) -> None:
    """Add an optional form field, skipping None."""
    if value is None:
        return
    if isinstance(value, (dict, list, tuple)):
        fields[name] = json.dumps(value)
    else:
        fields[name] = str(value)


def _put_effects(fields: Dict[str, str], request: JobRequest) -> None:
    _put(fields, "preprocessingEffects", request.preprocessing_effects)
    _put(fields, "postprocessingEffects", request.postprocessing_effects)


# ---------------------------------------------------------------------------
# Payload builders, one per JobKind
# ---------------------------------------------------------------------------


def _voice_conversion_payload(request: JobRequest) -> Payload:
    model_id = _single_model_id(request)
    upload = check_upload(request.input_path)
    fields = {"voiceModelId": model_id}
    _put(fields, "conversionStrength", request.conversion_strength)
    _put(fields, "modelVolumeMix", request.model_volume_mix)
    _put(fields, "pitchShift", request.pitch_shift)
    _put_effects(fields, request)
    return fields, upload


def _tts_payload(request: JobRequest) -> Payload:
    if not request.text or not request.text.strip():
        raise InvalidRequestError("Text for speech synthesis must not be empty")
    model_id = _single_model_id(request)
    fields = {"inputTtsText": request.text, "voiceModelId": model_id}
    _put_effects(fields, request)
    return fields, None


def _separation_payload(request: JobRequest) -> Payload:
    upload = check_upload(request.input_path)
    fields: Dict[str, str] = {}
    _put(fields, "outputFormat", request.output_format)
    return fields, upload


def _voice_blend_payload(request: JobRequest) -> Payload:
    check_blend(request.model_ids, request.weights)
    upload = check_upload(request.input_path)
    fields: Dict[str, str] = {}
    _put(fields, "voiceModelIds", list(request.model_ids))
    _put(fields, "blendWeights", list(request.weights))
    _put_effects(fields, request)
    return fields, upload


_PAYLOAD_BUILDERS: Dict[JobKind, Callable[[JobRequest], Payload]] = {
    JobKind.VOICE_CONVERSION: _voice_conversion_payload,
    JobKind.TEXT_TO_SPEECH: _tts_payload,
    JobKind.VOCAL_SEPARATION: _separation_payload,
    JobKind.STEM_SPLIT: _separation_payload,
    JobKind.VOICE_BLEND: _voice_blend_payload,
}

if set(_PAYLOAD_BUILDERS) != set(JobKind):
    raise RuntimeError("Every JobKind needs a payload builder")
