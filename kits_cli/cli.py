"""Command-line interface for the Kits AI CLI.

WHY: Users need one terminal command for every Kits AI operation. The CLI
maps subcommands onto the job workflow (submit, poll, download) and
reports failures with the operation name and error kind so the user can
tell a bad path from a network outage from a rejected job.

HOW: Uses argparse with one subparser per verb. Global flags (--api-key,
--verbose) are accepted before or after the subcommand. Each verb is an
entry in _COMMANDS mapping to an async runner in kits_cli.commands, which
runs inside a single KitsClient via asyncio.run().

RULES:
- Status messages go to stderr; listings go to stdout
- --api-key wins over KITS_API_KEY, which wins over the config file
- Errors print "<Operation> failed: [<Kind>] <message>" and exit 1
- Ctrl-C exits 130
- No subcommand prints the command overview and exits 0
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from kits_cli import __version__, commands
from kits_cli.api.client import KitsClient
from kits_cli.api.errors import KitsError
from kits_cli.config import ConfigStore, CredentialSource, StaticCredential
from kits_cli.interactive import interactive_mode

logger = logging.getLogger(__name__)

_status = commands.status_msg

Runner = Callable[[KitsClient, argparse.Namespace], Awaitable[object]]


# ---------------------------------------------------------------------------
# Subcommand runners
# ---------------------------------------------------------------------------


async def _voice_convert(client: KitsClient, args: argparse.Namespace) -> object:
    return await commands.voice_convert(
        client,
        args.input,
        model_id=args.model_id,
        output=args.output,
        conversion_strength=args.conversion_strength,
        model_volume_mix=args.model_volume_mix,
        pitch_shift=args.pitch_shift,
    )


async def _tts(client: KitsClient, args: argparse.Namespace) -> object:
    return await commands.text_to_speech(
        client, args.text, model_id=args.model_id, output=args.output
    )


async def _vocal_separate(client: KitsClient, args: argparse.Namespace) -> object:
    return await commands.vocal_separate(
        client, args.input, output_dir=args.output_dir, output_format=args.output_format
    )


async def _stem_split(client: KitsClient, args: argparse.Namespace) -> object:
    return await commands.stem_split(
        client, args.input, output_dir=args.output_dir, output_format=args.output_format
    )


async def _voice_blend(client: KitsClient, args: argparse.Namespace) -> object:
    model_ids: Optional[List[str]] = None
    weights: Optional[List[float]] = None
    if args.models or args.weights:
        model_ids, weights = commands.parse_blend_args(args.models or "", args.weights or "")
    return await commands.voice_blend(
        client, args.input, model_ids=model_ids, weights=weights, output=args.output
    )


async def _models(client: KitsClient, args: argparse.Namespace) -> object:
    if args.models_command == "get":
        return await commands.get_model(client, args.model_id)
    return await commands.list_models(client, page=args.page, limit=args.limit)


async def _status_cmd(client: KitsClient, args: argparse.Namespace) -> object:
    return await commands.check_status(client, args.job_id)


# command → (operation label for error messages, runner)
_COMMANDS: Dict[str, Tuple[str, Runner]] = {
    "voice-convert": ("Voice conversion", _voice_convert),
    "tts": ("Text-to-speech", _tts),
    "vocal-separate": ("Vocal separation", _vocal_separate),
    "stem-split": ("Stem splitting", _stem_split),
    "voice-blend": ("Voice blending", _voice_blend),
    "models": ("Fetching voice models", _models),
    "status": ("Checking job status", _status_cmd),
}


# ---------------------------------------------------------------------------
# Help
# ---------------------------------------------------------------------------

_OVERVIEW = [
    ("setup", "Configure your Kits AI API key"),
    ("voice-convert <input>", "Convert audio to a different voice"),
    ("tts <text>", "Convert text to speech"),
    ("vocal-separate <input>", "Separate vocals from instrumentals"),
    ("stem-split <input>", "Split audio into stems"),
    ("voice-blend <input>", "Blend multiple voices"),
    ("models list", "List available voice models"),
    ("models get <modelId>", "Get voice model details"),
    ("status <jobId>", "Check job status"),
    ("interactive", "Launch interactive mode"),
    ("help", "Show detailed help guide"),
]


def _print_overview() -> None:
    print("Kits AI CLI {}\n".format(__version__))
    print("Available Commands:\n")
    for usage, desc in _OVERVIEW:
        print("  {:<25}{}".format(usage, desc))
    print("\nQuick Start:\n")
    print("  Run 'kits-cli help' for the detailed usage guide")
    print("  Run 'kits-cli interactive' for a guided experience")
    print("  Run 'kits-cli models list' to browse voice models")


def _print_help(parser: argparse.ArgumentParser) -> None:
    _print_overview()
    print("\nExamples:\n")
    print("  kits-cli voice-convert song.wav --model-id 12345 --output converted.wav")
    print('  kits-cli tts "Hello world" --model-id 12345')
    print("  kits-cli vocal-separate song.mp3 --output-dir separated/")
    print("  kits-cli stem-split song.mp3 --output-dir stems/")
    print("  kits-cli voice-blend song.wav --models 111,222 --weights 0.6,0.4")
    print("  kits-cli status <jobId>")
    print("\nNotes:\n")
    print("  Supported input formats: .wav .mp3 .flac .m4a .ogg (max 100MB)")
    print("  Jobs are polled every 5 seconds for up to 5 minutes.")
    print("  The API key is read from --api-key, KITS_API_KEY, or ~/.kits-cli/config.json")
    print()
    parser.print_usage()


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Assemble the ``kits-cli`` argument parser.

    WHY: Flag names and defaults are the user-facing contract, so they get
    checked on their own, without a client or an event loop in the way.

    RULES:
    - Global flags live on a parent parser shared by every subparser
    - models has its own list/get subparsers
    """
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--api-key",
        default=argparse.SUPPRESS,
        help="Kits AI API key (can also be set via KITS_API_KEY).",
    )
    common.add_argument(
        "--verbose",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Enable verbose logging.",
    )

    parser = argparse.ArgumentParser(
        prog="kits-cli",
        description="Command-line client for Kits AI: voice conversion, TTS, "
                    "vocal separation, stem splitting and voice blending.",
        parents=[common],
    )
    parser.add_argument("--version", action="version", version="%(prog)s " + __version__)
    sub = parser.add_subparsers(dest="command", metavar="<command>")

    sub.add_parser("setup", parents=[common], help="Set up the API key.")

    p = sub.add_parser("voice-convert", parents=[common], help="Convert audio to a different voice.")
    p.add_argument("input", help="Input audio file path.")
    p.add_argument("--model-id", default=None, help="Voice model ID to use.")
    p.add_argument("--output", default=None, help="Output file path.")
    p.add_argument("--conversion-strength", type=float, default=None,
                   help="Conversion strength (0-1).")
    p.add_argument("--model-volume-mix", type=float, default=None,
                   help="Model volume mix (0-1).")
    p.add_argument("--pitch-shift", type=float, default=None,
                   help="Pitch shift in semitones.")

    p = sub.add_parser("tts", parents=[common], help="Convert text to speech.")
    p.add_argument("text", help="Text to convert to speech.")
    p.add_argument("--model-id", default=None, help="Voice model ID to use.")
    p.add_argument("--output", default=None, help="Output audio file path.")

    for name, desc in (
        ("vocal-separate", "Separate vocals from instrumental tracks."),
        ("stem-split", "Split audio into stems (drums, bass, etc.)."),
    ):
        p = sub.add_parser(name, parents=[common], help=desc)
        p.add_argument("input", help="Input audio file path.")
        p.add_argument("--output-dir", default=None, help="Output directory.")
        p.add_argument("--output-format", default=None, help="Output format requested from the API.")

    p = sub.add_parser("voice-blend", parents=[common], help="Blend multiple voices together.")
    p.add_argument("input", help="Input audio file path.")
    p.add_argument("--models", default=None, help="Comma-separated voice model IDs.")
    p.add_argument("--weights", default=None, help="Comma-separated blend weights (0-1).")
    p.add_argument("--output", default=None, help="Output file path.")

    p = sub.add_parser("models", parents=[common], help="List and inspect voice models.")
    models_sub = p.add_subparsers(dest="models_command", metavar="<list|get>")
    models_sub.required = True
    lp = models_sub.add_parser("list", parents=[common], help="List available voice models.")
    lp.add_argument("--page", type=int, default=1, help="Page number (default: %(default)s).")
    lp.add_argument("--limit", type=int, default=20, help="Models per page (default: %(default)s).")
    gp = models_sub.add_parser("get", parents=[common], help="Show a voice model.")
    gp.add_argument("model_id", help="Voice model ID.")

    p = sub.add_parser("status", parents=[common], help="Check job status.")
    p.add_argument("job_id", help="Job ID to check.")

    sub.add_parser("interactive", parents=[common], help="Interactive mode.")
    sub.add_parser("help", parents=[common], help="Show the usage guide.")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    if not verbose:
        # httpx logs every request at INFO
        logging.getLogger("httpx").setLevel(logging.WARNING)


def _credentials(args: argparse.Namespace, store: ConfigStore) -> CredentialSource:
    api_key = getattr(args, "api_key", None)
    if api_key:
        return StaticCredential(api_key)
    return store


async def _dispatch(args: argparse.Namespace, credentials: CredentialSource) -> None:
    _, runner = _COMMANDS[args.command]
    async with KitsClient(credentials) as client:
        await runner(client, args)


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the ``kits-cli`` console script.

    RULES:
    - argv defaults to sys.argv[1:]; tests pass their own list
    - Never returns normally: every path ends in sys.exit(0, 1 or 130)
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(getattr(args, "verbose", False))
    store = ConfigStore()

    if not args.command:
        _print_overview()
        sys.exit(0)
    if args.command == "help":
        _print_help(parser)
        sys.exit(0)

    label = "Setup"
    try:
        if args.command == "setup":
            sys.exit(0 if commands.setup_api_key(store) else 1)
        if args.command == "interactive":
            label = "Interactive mode"
            sys.exit(asyncio.run(interactive_mode(_credentials(args, store), store)))

        label = _COMMANDS[args.command][0]
        asyncio.run(_dispatch(args, _credentials(args, store)))
    except KitsError as e:
        print("Error: {} failed: [{}] {}".format(label, e.kind, e), file=sys.stderr)
        logger.debug("Command %s failed", args.command, exc_info=True)
        sys.exit(1)
    except (KeyboardInterrupt, EOFError):
        _status("\nCancelled by user.")
        sys.exit(130)
    sys.exit(0)


if __name__ == "__main__":
    main()
