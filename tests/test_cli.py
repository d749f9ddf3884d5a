"""Tests for the command-line interface.

WHY: The CLI is the user-facing contract: flag names, exit codes, and the
"<Operation> failed: [<Kind>] <message>" error line that scripts and users
rely on. Regressions here break everything downstream even when the API
layer is fine.

HOW: main() is called with an explicit argv. kits_cli.cli.KitsClient is
replaced with a partial that injects fake transports, so full commands
run end to end without a network.

RULES:
- Exit 0 on success, 1 on any KitsError
- Errors go to stderr, listings go to stdout
"""

from __future__ import annotations

import functools

import httpx
import pytest

from kits_cli.api.client import KitsClient
from kits_cli.cli import build_parser, main

from tests.conftest import API_BASE, FakeAPI, file_server, job_response


def _install_fakes(monkeypatch, api, storage=None):
    monkeypatch.setattr("kits_cli.cli.KitsClient", functools.partial(
        KitsClient,
        base_url=API_BASE,
        transport=api.transport(),
        download_transport=storage.transport() if storage else None,
        poll_interval_s=0,
    ))


def _exit_code(argv):
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return exc_info.value.code


class TestParser:
    def test_global_flags_before_subcommand(self):
        args = build_parser().parse_args(["--api-key", "k", "--verbose", "tts", "hi"])
        assert args.api_key == "k"
        assert args.verbose is True
        assert args.text == "hi"

    def test_global_flags_after_subcommand(self):
        args = build_parser().parse_args(["tts", "hi", "--api-key", "k"])
        assert args.api_key == "k"

    def test_voice_convert_options(self):
        args = build_parser().parse_args([
            "voice-convert", "song.wav", "--model-id", "12",
            "--conversion-strength", "0.5", "--pitch-shift", "-2",
        ])
        assert args.input == "song.wav"
        assert args.model_id == "12"
        assert args.conversion_strength == 0.5
        assert args.pitch_shift == -2.0
        assert args.model_volume_mix is None

    def test_models_list_defaults(self):
        args = build_parser().parse_args(["models", "list"])
        assert args.models_command == "list"
        assert args.page == 1
        assert args.limit == 20

    def test_models_requires_subcommand(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["models"])


class TestHelp:
    def test_no_command_prints_overview(self, capsys):
        assert _exit_code([]) == 0
        out = capsys.readouterr().out
        assert "Available Commands" in out
        assert "voice-convert" in out

    def test_help_command(self, capsys):
        assert _exit_code(["help"]) == 0
        assert "Examples" in capsys.readouterr().out

    def test_version(self, capsys):
        assert _exit_code(["--version"]) == 0
        assert "kits-cli" in capsys.readouterr().out


class TestErrors:
    def test_missing_api_key(self, capsys):
        assert _exit_code(["status", "j1"]) == 1
        err = capsys.readouterr().err
        assert "Error: Checking job status failed: [MissingCredential]" in err

    def test_missing_input_file(self, tmp_path, capsys, monkeypatch):
        api = FakeAPI(lambda r: job_response())
        _install_fakes(monkeypatch, api)

        code = _exit_code([
            "voice-convert", str(tmp_path / "nope.wav"), "--model-id", "1", "--api-key", "k",
        ])

        assert code == 1
        assert "Voice conversion failed: [InvalidRequest] Input file not found" in capsys.readouterr().err
        assert api.calls == 0

    def test_unsupported_format(self, tmp_path, capsys, monkeypatch):
        doc = tmp_path / "notes.txt"
        doc.write_text("hello")
        api = FakeAPI(lambda r: job_response())
        _install_fakes(monkeypatch, api)

        code = _exit_code(["voice-convert", str(doc), "--model-id", "1", "--api-key", "k"])

        assert code == 1
        assert "Unsupported file format: .txt" in capsys.readouterr().err

    def test_model_id_required_without_tty(self, audio_file, capsys, monkeypatch):
        monkeypatch.setattr("kits_cli.prompts.is_interactive", lambda: False)
        api = FakeAPI(lambda r: job_response())
        _install_fakes(monkeypatch, api)

        code = _exit_code(["voice-convert", str(audio_file), "--api-key", "k"])

        assert code == 1
        assert "--model-id" in capsys.readouterr().err
        assert api.calls == 0

    def test_models_list_with_null_total(self, monkeypatch, capsys):
        api = FakeAPI(lambda r: httpx.Response(200, json={"data": [], "meta": {"total": None}}))
        _install_fakes(monkeypatch, api)

        assert _exit_code(["models", "list", "--api-key", "k"]) == 0
        assert "Total Models: 0" in capsys.readouterr().out

    def test_models_list_body_of_wrong_shape(self, monkeypatch, capsys):
        api = FakeAPI(lambda r: httpx.Response(200, json=["x"]))
        _install_fakes(monkeypatch, api)

        assert _exit_code(["models", "list", "--api-key", "k"]) == 1
        err = capsys.readouterr().err
        assert "Error: Fetching voice models failed: [ServerError]" in err
        assert "Traceback" not in err

    def test_blend_mismatch_makes_no_request(self, audio_file, capsys, monkeypatch):
        api = FakeAPI(lambda r: job_response())
        _install_fakes(monkeypatch, api)

        code = _exit_code([
            "voice-blend", str(audio_file), "--models", "a,b", "--weights", "1.0",
            "--api-key", "k",
        ])

        assert code == 1
        assert "Voice blending failed: [InvalidRequest]" in capsys.readouterr().err
        assert api.calls == 0

    def test_failed_job(self, audio_file, capsys, monkeypatch):
        def handler(request):
            if request.method == "POST":
                return job_response(job_id="j1")
            return job_response(job_id="j1", status="failed", error="model unavailable")

        _install_fakes(monkeypatch, FakeAPI(handler))

        code = _exit_code(["stem-split", str(audio_file), "--api-key", "k"])

        assert code == 1
        err = capsys.readouterr().err
        assert "Stem splitting failed: [JobFailed] Job failed: model unavailable" in err


class TestCommands:
    def test_tts_downloads_result(self, tmp_path, capsys, monkeypatch):
        def handler(request):
            if request.method == "POST":
                return job_response(job_id="t1", status="queued")
            return job_response(
                job_id="t1", status="completed", progress=100,
                outputUrl="https://cdn.test/t1.wav",
            )

        api = FakeAPI(handler)
        storage = file_server({"/t1.wav": b"SPEECH"})
        _install_fakes(monkeypatch, api, storage)
        out = tmp_path / "hello.wav"

        code = _exit_code(["tts", "Hello world", "--model-id", "9", "--output", str(out),
                           "--api-key", "k"])

        assert code == 0
        assert out.read_bytes() == b"SPEECH"
        assert api.requests[0].headers["Authorization"] == "Bearer k"
        err = capsys.readouterr().err
        assert "Job t1: completed (100%)" in err
        assert "Output saved to" in err

    def test_vocal_separate_writes_parts(self, tmp_path, audio_file, monkeypatch):
        def handler(request):
            if request.method == "POST":
                return job_response(job_id="s1")
            return job_response(job_id="s1", status="completed", outputUrls={
                "vocals": "https://cdn.test/v.wav",
                "instrumental": "https://cdn.test/i.wav",
            })

        storage = file_server({"/v.wav": b"V", "/i.wav": b"I"})
        _install_fakes(monkeypatch, FakeAPI(handler), storage)
        out_dir = tmp_path / "separated"

        code = _exit_code(["vocal-separate", str(audio_file), "--output-dir", str(out_dir),
                           "--api-key", "k"])

        assert code == 0
        assert (out_dir / "vocals.wav").read_bytes() == b"V"
        assert (out_dir / "instrumental.wav").read_bytes() == b"I"

    def test_env_key_is_used(self, monkeypatch, capsys):
        monkeypatch.setenv("KITS_API_KEY", "env-key")
        api = FakeAPI(lambda r: httpx.Response(200, json={"data": [], "meta": {}}))
        _install_fakes(monkeypatch, api)

        assert _exit_code(["models", "list"]) == 0
        assert api.requests[0].headers["Authorization"] == "Bearer env-key"
        assert "Total Models: 0" in capsys.readouterr().out

    def test_status_prints_job(self, monkeypatch, capsys):
        def handler(request):
            if request.url.path == "/tts/j5":
                return job_response(job_id="j5", status="processing", progress=30)
            return httpx.Response(404, json={})

        _install_fakes(monkeypatch, FakeAPI(handler))

        assert _exit_code(["status", "j5", "--api-key", "k"]) == 0
        out = capsys.readouterr().out
        assert "Type: text-to-speech" in out
        assert "Progress: 30%" in out

    def test_models_get(self, monkeypatch, capsys):
        api = FakeAPI(lambda r: httpx.Response(200, json={"id": "m1", "title": "Alto"}))
        _install_fakes(monkeypatch, api)

        assert _exit_code(["models", "get", "m1", "--api-key", "k"]) == 0
        assert "Name: Alto" in capsys.readouterr().out
