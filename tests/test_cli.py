"""Tests for localscribe CLI commands."""

from __future__ import annotations

import json
from pathlib import Path

import numpy as np
import pytest
import soundfile as sf
import yaml
from conftest import FakeFactory
from typer.testing import CliRunner

from localscribe import __version__
from localscribe.cli import app
from localscribe.models import SAMPLE_RATE, Device

runner = CliRunner()


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "localscribe.yaml"
    path.write_text(yaml.safe_dump({"cache_registry_path": str(tmp_path / "models.json")}))
    return path


@pytest.fixture
def wav_file(tmp_path: Path) -> Path:
    path = tmp_path / "talk.wav"
    sf.write(path, np.zeros(SAMPLE_RATE, dtype=np.float32), SAMPLE_RATE)
    return path


@pytest.fixture
def patched_factory(monkeypatch: pytest.MonkeyPatch, fake_factory: FakeFactory) -> FakeFactory:
    monkeypatch.setattr("localscribe.session.get_engine_factory", lambda backend: fake_factory)
    return fake_factory


class TestVersion:
    def test_version_flag(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestInitCommand:
    def test_writes_default_config(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["init", "-d", str(tmp_path)])
        assert result.exit_code == 0
        raw = yaml.safe_load((tmp_path / "localscribe.yaml").read_text())
        assert raw["model_id"] == "openai/whisper-tiny"
        assert raw["pause_threshold"] == 1.5

    def test_refuses_to_overwrite(self, tmp_path: Path) -> None:
        (tmp_path / "localscribe.yaml").write_text("device: gpu\n")
        result = runner.invoke(app, ["init", "-d", str(tmp_path)])
        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_force_overwrites(self, tmp_path: Path) -> None:
        (tmp_path / "localscribe.yaml").write_text("device: gpu\n")
        result = runner.invoke(app, ["init", "-d", str(tmp_path), "--force"])
        assert result.exit_code == 0
        assert "device: cpu" in (tmp_path / "localscribe.yaml").read_text()


class TestTranscribeCommand:
    def test_writes_srt_next_to_media(
        self, wav_file: Path, config_file: Path, patched_factory: FakeFactory
    ) -> None:
        result = runner.invoke(app, ["transcribe", str(wav_file), "-c", str(config_file)])
        assert result.exit_code == 0, result.output
        srt = wav_file.with_suffix(".srt").read_text()
        assert srt.startswith("1\n00:00:00,000 --> 00:00:00,500\nHello\n\n")
        assert "Speaker 1, Speaker 2" in result.output

    def test_marks_model_downloaded(
        self, wav_file: Path, config_file: Path, patched_factory: FakeFactory
    ) -> None:
        runner.invoke(app, ["transcribe", str(wav_file), "-c", str(config_file)])
        registry = json.loads((config_file.parent / "models.json").read_text())
        assert registry == {"models": ["openai/whisper-tiny"]}

    def test_json_output_and_overrides(
        self,
        wav_file: Path,
        config_file: Path,
        patched_factory: FakeFactory,
        tmp_path: Path,
    ) -> None:
        output = tmp_path / "out" / "talk.json"
        result = runner.invoke(
            app,
            [
                "transcribe",
                str(wav_file),
                "-c",
                str(config_file),
                "-f",
                "json",
                "-o",
                str(output),
                "-m",
                "openai/whisper-base",
                "-l",
                "french",
                "--pause-threshold",
                "10",
            ],
        )
        assert result.exit_code == 0, result.output
        data = json.loads(output.read_text())
        assert {c["speaker"] for c in data["chunks"]} == {"Speaker 1"}
        assert patched_factory.calls[0].model_id == "openai/whisper-base"
        assert patched_factory.engines[0].calls[0]["options"]["language"] == "french"

    def test_gpu_falls_back_to_cpu(
        self, wav_file: Path, config_file: Path, patched_factory: FakeFactory
    ) -> None:
        patched_factory.failing_devices = {Device.GPU}
        result = runner.invoke(
            app, ["transcribe", str(wav_file), "-c", str(config_file), "-d", "gpu"]
        )
        assert result.exit_code == 0, result.output
        assert [d.device for d in patched_factory.calls] == [Device.GPU, Device.CPU]

    def test_engine_failure_exits_1(
        self, wav_file: Path, config_file: Path, patched_factory: FakeFactory
    ) -> None:
        patched_factory.failing_devices = {Device.CPU}
        result = runner.invoke(app, ["transcribe", str(wav_file), "-c", str(config_file)])
        assert result.exit_code == 1
        assert "cpu backend unavailable" in result.output
        assert not wav_file.with_suffix(".srt").exists()

    def test_rejects_non_media(self, tmp_path: Path, config_file: Path) -> None:
        notes = tmp_path / "notes.txt"
        notes.write_text("hi")
        result = runner.invoke(app, ["transcribe", str(notes), "-c", str(config_file)])
        assert result.exit_code == 1
        assert "valid audio or video" in result.output

    def test_unknown_format(self, wav_file: Path, config_file: Path) -> None:
        result = runner.invoke(
            app, ["transcribe", str(wav_file), "-c", str(config_file), "-f", "ass"]
        )
        assert result.exit_code == 1
        assert "Unknown format" in result.output

    def test_invalid_language(self, wav_file: Path, config_file: Path) -> None:
        result = runner.invoke(
            app, ["transcribe", str(wav_file), "-c", str(config_file), "-l", "klingon"]
        )
        assert result.exit_code == 1
        assert "Error" in result.output


class TestExportCommand:
    def test_json_to_vtt(self, tmp_path: Path) -> None:
        transcript = tmp_path / "talk.json"
        transcript.write_text(
            json.dumps({"text": "hi", "chunks": [{"text": "hi", "timestamp": [0.0, 1.0]}]})
        )
        result = runner.invoke(app, ["export", str(transcript), "-f", "vtt"])
        assert result.exit_code == 0
        assert (tmp_path / "talk.vtt").read_text() == (
            "WEBVTT\n\n00:00:00.000 --> 00:00:01.000\nhi\n\n"
        )

    def test_missing_transcript(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["export", str(tmp_path / "nope.json")])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_invalid_json(self, tmp_path: Path) -> None:
        transcript = tmp_path / "talk.json"
        transcript.write_text("{")
        result = runner.invoke(app, ["export", str(transcript)])
        assert result.exit_code == 1
        assert "Invalid JSON" in result.output

    def test_unknown_format(self, tmp_path: Path) -> None:
        transcript = tmp_path / "talk.json"
        transcript.write_text('{"chunks": []}')
        result = runner.invoke(app, ["export", str(transcript), "-f", "ass"])
        assert result.exit_code == 1
        assert "Unknown export format" in result.output


class TestModelsCommand:
    def test_lists_builtin_models_with_status(self, config_file: Path) -> None:
        (config_file.parent / "models.json").write_text('{"models": ["openai/whisper-base"]}')
        result = runner.invoke(app, ["models", "-c", str(config_file)])
        assert result.exit_code == 0
        assert "openai/whisper-tiny" in result.output
        assert "openai/whisper-small" in result.output
        assert "Ready" in result.output
