"""Interactive menu mode.

WHY: New users don't know the flags. Interactive mode walks them through
every operation with prompts and runs the same command sequences as the
CLI.

HOW: A numbered menu loop. Each action prompts for its inputs and awaits
the matching function in kits_cli.commands inside one shared KitsClient.
Errors from one action are reported and the loop continues.

RULES:
- Offers setup first when no API key is configured
- A KitsError ends the current action, not the session
- Ctrl-C or Ctrl-D leaves the menu
"""

from __future__ import annotations

from typing import Awaitable, Callable, Dict, Optional

from kits_cli import commands, prompts
from kits_cli.api.client import KitsClient
from kits_cli.api.errors import KitsError
from kits_cli.config import ConfigStore, CredentialSource


_status = commands.status_msg


def _optional_float(message: str) -> Optional[float]:
    raw = prompts.prompt_text(message + " (blank to skip)", required=False)
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        _status("  Not a number, skipping.")
        return None


async def _voice_convert(client: KitsClient) -> None:
    input_file = prompts.prompt_text("Input audio file path")
    output = prompts.prompt_text("Output file path (blank for default)", required=False)
    await commands.voice_convert(
        client,
        input_file,
        output=output or None,
        conversion_strength=_optional_float("Conversion strength 0-1"),
        pitch_shift=_optional_float("Pitch shift in semitones"),
    )


async def _tts(client: KitsClient) -> None:
    text = prompts.prompt_text("Text to convert to speech")
    output = prompts.prompt_text("Output file path (blank for default)", required=False)
    await commands.text_to_speech(client, text, output=output or None)


async def _vocal_separate(client: KitsClient) -> None:
    input_file = prompts.prompt_text("Input audio file path")
    output_dir = prompts.prompt_text("Output directory (blank for default)", required=False)
    await commands.vocal_separate(client, input_file, output_dir=output_dir or None)


async def _stem_split(client: KitsClient) -> None:
    input_file = prompts.prompt_text("Input audio file path")
    output_dir = prompts.prompt_text("Output directory (blank for default)", required=False)
    await commands.stem_split(client, input_file, output_dir=output_dir or None)


async def _voice_blend(client: KitsClient) -> None:
    input_file = prompts.prompt_text("Input audio file path")
    output = prompts.prompt_text("Output file path (blank for default)", required=False)
    await commands.voice_blend(client, input_file, output=output or None)


async def _models(client: KitsClient) -> None:
    action = prompts.prompt_choice(
        "Choose an action",
        [("List voice models", "list"), ("Get model details", "get")],
    )
    if action == "list":
        page = int(prompts.prompt_float("Page number", default=1, minimum=1))
        await commands.list_models(client, page=page)
    else:
        await commands.get_model(client, prompts.prompt_text("Voice model ID"))


async def _status_check(client: KitsClient) -> None:
    await commands.check_status(client, prompts.prompt_text("Job ID"))


_ACTIONS: Dict[str, Callable[[KitsClient], Awaitable[None]]] = {
    "Voice Conversion - Convert audio to different voices": _voice_convert,
    "Text-to-Speech - Convert text to speech": _tts,
    "Vocal Separation - Separate vocals from instrumentals": _vocal_separate,
    "Stem Splitting - Split audio into different stems": _stem_split,
    "Voice Blending - Blend multiple voices together": _voice_blend,
    "Voice Models - Browse available voice models": _models,
    "Check Job Status - Monitor your processing jobs": _status_check,
}


async def interactive_mode(credentials: CredentialSource, store: ConfigStore) -> int:
    """Run the menu loop. Returns the process exit code."""
    _status("Interactive Kits AI CLI")
    _status("")

    if not credentials.get_credential():
        _status("No API key found.")
        if not prompts.prompt_confirm("Would you like to set up your API key now?"):
            _status('Please run "kits-cli setup" to configure your API key first.')
            return 1
        if not commands.setup_api_key(store):
            return 1
        credentials = store

    choices = [(label, label) for label in _ACTIONS] + [("Exit", "")]

    async with KitsClient(credentials) as client:
        while True:
            _status("")
            _status("What would you like to do?")
            try:
                picked = prompts.prompt_choice("Choose an action", choices)
                if not picked:
                    break
                await _ACTIONS[picked](client)
            except KitsError as e:
                _status("{} failed: [{}] {}".format(picked.split(" - ")[0], e.kind, e))
            except (EOFError, KeyboardInterrupt):
                _status("")
                break

    _status("Thanks for using Kits AI CLI!")
    return 0
