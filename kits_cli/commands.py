"""Command implementations shared by the CLI and interactive mode.

WHY: Each CLI verb is the same short sequence: validate input, submit,
poll with progress, download, print a summary. Interactive mode runs the
same sequences after prompting, so the sequences live here rather than
inside the argparse wiring.

HOW: Every command is an async function taking an open KitsClient plus
plain arguments. Status and summaries go to stderr via status_msg(). Errors
are not caught here; cli.main() and the interactive loop report them with
the operation name.

RULES:
- Input extension checked against SUPPORTED_AUDIO_FORMATS before any API call
- Missing model ids are prompted for only on a TTY; otherwise InvalidRequestError
- Default outputs: {prefix}_{epoch_ms}.wav in CWD, or {prefix}_{epoch_ms}/ for multi-part
- A completed job without outputs prints a warning, not an error
"""

from __future__ import annotations

import sys
import time
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from kits_cli import prompts
from kits_cli.api.client import KitsClient
from kits_cli.api.errors import InvalidRequestError
from kits_cli.api.models import Job, JobKind, JobRequest, JobStatus, VoiceModel
from kits_cli.config import SUPPORTED_AUDIO_FORMATS, CredentialSource


def status_msg(msg: str = "") -> None:
    """Print a status message to stderr and flush."""
    print(msg, file=sys.stderr, flush=True)


def _progress(job: Job) -> None:
    progress = job.progress if job.progress is not None else 0
    status_msg("Job {}: {} ({:g}%)".format(job.id, job.status.value, progress))


def _timestamp() -> int:
    return int(time.time() * 1000)


def validate_input_file(input_file: str) -> Path:
    """Resolve ``input_file`` and check it exists with a supported extension."""
    path = Path(input_file).expanduser().resolve()
    try:
        found = path.is_file()
        size_mb = path.stat().st_size / (1024 * 1024) if found else 0.0
    except OSError as e:
        raise InvalidRequestError(f"Cannot read input file {path}: {e}") from e
    if not found:
        raise InvalidRequestError(f"Input file not found: {path}")
    ext = path.suffix.lower()
    if ext not in SUPPORTED_AUDIO_FORMATS:
        raise InvalidRequestError(
            "Unsupported file format: {}. Supported formats: {}".format(
                ext or "(none)", ", ".join(sorted(SUPPORTED_AUDIO_FORMATS))
            )
        )
    status_msg(f"Input file: {path}")
    status_msg(f"File size: {size_mb:.2f}MB")
    return path


def parse_blend_args(models: str, weights: str) -> tuple:
    """Split ``--models a,b`` and ``--weights 0.5,0.5`` into id and weight lists."""
    model_ids = [m.strip() for m in models.split(",") if m.strip()]
    try:
        weight_values = [float(w.strip()) for w in weights.split(",") if w.strip()]
    except ValueError:
        raise InvalidRequestError(f"Weights must be numbers between 0 and 1: {weights}") from None
    return model_ids, weight_values


# ---------------------------------------------------------------------------
# Model selection
# ---------------------------------------------------------------------------


def _model_label(model: VoiceModel) -> str:
    return f"{model.name} (ID: {model.id})"


async def _fetch_choices(client: KitsClient, limit: int) -> List[VoiceModel]:
    if not prompts.is_interactive():
        raise InvalidRequestError("A voice model id is required (use --model-id)")
    status_msg("Fetching available voice models...")
    page = await client.list_voice_models(page=1, limit=limit)
    if not page.items:
        raise InvalidRequestError("No voice models available")
    return page.items


async def choose_model(client: KitsClient, message: str = "Choose a voice model") -> str:
    models = await _fetch_choices(client, limit=10)
    return prompts.prompt_choice(message, [(_model_label(m), m.id) for m in models])


async def choose_blend(client: KitsClient) -> tuple:
    """Prompt for 2–4 models and a weight for each."""
    models = await _fetch_choices(client, limit=20)
    if len(models) < 2:
        raise InvalidRequestError("At least two voice models are needed to blend")
    model_ids = prompts.prompt_multi_choice(
        "Choose voice models to blend",
        [(_model_label(m), m.id) for m in models],
        min_count=2,
        max_count=4,
    )
    default = round(1 / len(model_ids), 2)
    weights = [
        prompts.prompt_float(f"Weight for model {mid} (0-1)", default=default, minimum=0, maximum=1)
        for mid in model_ids
    ]
    return model_ids, weights


# ---------------------------------------------------------------------------
# Result handling
# ---------------------------------------------------------------------------


def _print_details(job: Job, **extra: object) -> None:
    status_msg("")
    status_msg("Job Details:")
    status_msg(f"  Job ID: {job.id}")
    status_msg(f"  Status: {job.status.value}")
    for key, value in extra.items():
        status_msg("  {}: {}".format(key.replace("_", " ").capitalize(), value))
    status_msg("")


async def _save_single(
    client: KitsClient,
    job: Job,
    output: Optional[str],
    prefix: str,
) -> Optional[Path]:
    if not job.output_url:
        status_msg("Warning: job completed but no output URL provided")
        return None
    dest = Path(output) if output else Path(f"{prefix}_{_timestamp()}.wav")
    status_msg("Downloading result...")
    path = await client.download_one(job.output_url, dest)
    status_msg(f"{job.kind.label} completed! Output saved to: {path}")
    return path


async def _save_many(
    client: KitsClient,
    job: Job,
    output_dir: Optional[str],
    prefix: str,
) -> Optional[Dict[str, Path]]:
    outputs = job.output_urls
    if not outputs and job.output_url:
        outputs = {"output": job.output_url}
    if not outputs:
        status_msg("Warning: job completed but no output URLs provided")
        return None
    dest_dir = Path(output_dir) if output_dir else Path(f"{prefix}_{_timestamp()}")
    status_msg(f"Downloading {len(outputs)} file(s)...")
    paths = await client.download_many(outputs, dest_dir)
    status_msg(f"{job.kind.label} completed! Files saved to: {dest_dir}")
    return paths


async def _run(client: KitsClient, request: JobRequest) -> Job:
    status_msg(f"Starting {request.kind.label.lower()}...")
    job = await client.submit(request)
    status_msg(f"Job created (ID: {job.id}). Waiting for completion...")
    return await client.poll(job.id, job.kind, on_progress=_progress)


# ---------------------------------------------------------------------------
# Job commands
# ---------------------------------------------------------------------------


async def voice_convert(
    client: KitsClient,
    input_file: str,
    model_id: Optional[str] = None,
    output: Optional[str] = None,
    conversion_strength: Optional[float] = None,
    model_volume_mix: Optional[float] = None,
    pitch_shift: Optional[float] = None,
) -> Optional[Path]:
    input_path = validate_input_file(input_file)
    if not model_id:
        model_id = await choose_model(client)
    job = await _run(client, JobRequest(
        kind=JobKind.VOICE_CONVERSION,
        input_path=input_path,
        model_ids=(model_id,),
        conversion_strength=conversion_strength,
        model_volume_mix=model_volume_mix,
        pitch_shift=pitch_shift,
    ))
    path = await _save_single(client, job, output, "voice_converted")
    if path:
        _print_details(job, model=model_id, input=input_path, output=path)
    return path


async def text_to_speech(
    client: KitsClient,
    text: str,
    model_id: Optional[str] = None,
    output: Optional[str] = None,
) -> Optional[Path]:
    if not model_id:
        model_id = await choose_model(client, "Choose a voice model for TTS")
    job = await _run(client, JobRequest(
        kind=JobKind.TEXT_TO_SPEECH,
        text=text,
        model_ids=(model_id,),
    ))
    path = await _save_single(client, job, output, "tts_output")
    if path:
        shown = text[:50] + ("..." if len(text) > 50 else "")
        _print_details(job, model=model_id, text='"{}"'.format(shown), output=path)
    return path


async def vocal_separate(
    client: KitsClient,
    input_file: str,
    output_dir: Optional[str] = None,
    output_format: Optional[str] = None,
) -> Optional[Dict[str, Path]]:
    input_path = validate_input_file(input_file)
    job = await _run(client, JobRequest(
        kind=JobKind.VOCAL_SEPARATION,
        input_path=input_path,
        output_format=output_format,
    ))
    paths = await _save_many(client, job, output_dir, "vocal_separation")
    if paths:
        _print_details(job, input=input_path, files=", ".join(p.name for p in paths.values()))
    return paths


async def stem_split(
    client: KitsClient,
    input_file: str,
    output_dir: Optional[str] = None,
    output_format: Optional[str] = None,
) -> Optional[Dict[str, Path]]:
    input_path = validate_input_file(input_file)
    job = await _run(client, JobRequest(
        kind=JobKind.STEM_SPLIT,
        input_path=input_path,
        output_format=output_format,
    ))
    paths = await _save_many(client, job, output_dir, "stem_split")
    if paths:
        _print_details(job, input=input_path, stems=", ".join(p.name for p in paths.values()))
    return paths


async def voice_blend(
    client: KitsClient,
    input_file: str,
    model_ids: Optional[Sequence[str]] = None,
    weights: Optional[Sequence[float]] = None,
    output: Optional[str] = None,
) -> Optional[Path]:
    input_path = validate_input_file(input_file)
    if not model_ids and not weights:
        model_ids, weights = await choose_blend(client)
    model_ids = list(model_ids or [])
    weights = list(weights or [])
    status_msg(f"Blending {len(model_ids)} voices...")
    job = await _run(client, JobRequest(
        kind=JobKind.VOICE_BLEND,
        input_path=input_path,
        model_ids=tuple(model_ids),
        weights=tuple(weights),
    ))
    path = await _save_single(client, job, output, "voice_blended")
    if path:
        _print_details(
            job,
            input=input_path,
            models=", ".join(model_ids),
            weights=", ".join(f"{w:g}" for w in weights),
            output=path,
        )
    return path


# ---------------------------------------------------------------------------
# Read-only commands
# ---------------------------------------------------------------------------


async def list_models(client: KitsClient, page: int = 1, limit: int = 20) -> None:
    result = await client.list_voice_models(page=page, limit=limit)
    status_msg(f"Found {len(result.items)} voice models")
    print("\nAvailable Voice Models:\n")
    for i, model in enumerate(result.items, 1):
        print(f"{i}. {model.name}")
        print(f"   ID: {model.id}")
        if model.description:
            print(f"   Description: {model.description}")
        if model.tags:
            print("   Tags: {}".format(", ".join(model.tags)))
        if model.type:
            print(f"   Type: {model.type}")
        if model.demo_url:
            print(f"   Demo: {model.demo_url}")
        print()
    print(f"Page: {result.current_page} of {result.last_page}")
    print(f"Total Models: {result.total}")
    print(f"Per Page: {result.per_page}")
    if result.has_next:
        print(f"\nTo see more models, use: kits-cli models list --page {result.current_page + 1}")


async def get_model(client: KitsClient, model_id: str) -> VoiceModel:
    model = await client.get_voice_model(model_id)
    print("\nVoice Model Details:\n")
    print(f"Name: {model.name}")
    print(f"ID: {model.id}")
    for label, value in (
        ("Description", model.description),
        ("Type", model.type),
        ("Tags", ", ".join(model.tags) if model.tags else None),
        ("Language", model.language),
        ("Gender", model.gender),
        ("Age", model.age),
        ("Accent", model.accent),
        ("Style", model.style),
        ("Demo", model.demo_url),
        ("Image", model.image_url),
        ("Available", None if model.is_usable is None else ("Yes" if model.is_usable else "No")),
        ("Created", model.created_at),
        ("Updated", model.updated_at),
    ):
        if value:
            print(f"{label}: {value}")
    print("\nUsage Examples:")
    print(f"  Voice Conversion: kits-cli voice-convert input.wav --model-id {model.id}")
    print(f'  Text-to-Speech: kits-cli tts "Hello world" --model-id {model.id}')
    print(f"  Voice Blending: kits-cli voice-blend input.wav --models {model.id},OTHER_ID --weights 0.5,0.5")
    return model


async def check_status(client: KitsClient, job_id: str, kind: Optional[JobKind] = None) -> Job:
    job = await client.get_job(job_id, kind) if kind else await client.find_job(job_id)
    print("\nJob Status:\n")
    print(f"Job ID: {job.id}")
    print(f"Type: {job.kind.value}")
    print(f"Status: {job.status.value}")
    if job.progress is not None:
        print(f"Progress: {job.progress:g}%")
    if job.created_at:
        print(f"Created: {job.created_at}")
    if job.updated_at:
        print(f"Updated: {job.updated_at}")
    if job.error:
        print(f"Error: {job.error}")
    if job.status is JobStatus.COMPLETED:
        if job.output_url:
            print(f"\nOutput URL: {job.output_url}")
            print(f'Download with: curl "{job.output_url}" -o output.wav')
        if job.output_urls:
            print("\nOutput URLs:")
            for name, url in job.output_urls.items():
                print(f"  {name}: {url}")
    elif not job.is_terminal:
        print("\nJob is still processing. Check again in a few moments:")
        print(f"  kits-cli status {job.id}")
    return job


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def setup_api_key(store: CredentialSource) -> bool:
    """Prompt for an API key and save it. Returns True when saved."""
    status_msg("Setup Kits AI CLI")
    status_msg("")
    status_msg("You need a Kits AI API key to use this CLI.")
    status_msg("Get your API key from: https://docs.kits.ai/api-reference")
    status_msg("")
    key = ""
    while not key:
        key = prompts.ask_secret("Enter your Kits AI API key: ").strip()
        if not key:
            status_msg("  API key is required.")

    if not prompts.prompt_confirm("Save API key to local config file?", default=True):
        status_msg("API key not saved. Set the KITS_API_KEY environment variable to use the CLI.")
        return False

    if store.set_credential(key):
        status_msg("API key saved successfully!")
        status_msg("Try running: kits-cli models list")
        return True
    status_msg("Failed to save API key to config file.")
    status_msg("You can set it as an environment variable: KITS_API_KEY")
    return False
