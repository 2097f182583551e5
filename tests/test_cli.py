"""Tests for the CLI."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from context_tiers.cli import app
from context_tiers.config import TelemetrySettings
from context_tiers.telemetry.recorder import TelemetryRecorder
from context_tiers.telemetry.store import JsonFileTelemetryStore
from tests.mocks.results import make_result

if TYPE_CHECKING:
    from pathlib import Path

runner = CliRunner(env={"NO_COLOR": "1", "TERM": "dumb"})

# Google models are counted with a character ratio, so no tokenizer download is needed
MODEL_ARGS = ["--model", "gemini-1.5-flash", "--provider", "google"]


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """An empty config file, so the user's own config is never read."""
    path = tmp_path / "config.toml"
    path.write_text("[context]\nmid-term-zone-tokens = 60\n")
    return path


@pytest.fixture
def transcript_file(tmp_path: Path) -> Path:
    """A transcript of twenty turns."""
    entries = [
        {
            "id": f"m{i}",
            "role": "user" if i % 2 == 0 else "assistant",
            "content": f"This is message number {i} of a rather long conversation.",
        }
        for i in range(20)
    ]
    path = tmp_path / "chat.json"
    path.write_text(json.dumps({"conversation_id": "chat", "entries": entries}))
    return path


@pytest.fixture
def telemetry_file(tmp_path: Path) -> Path:
    """A telemetry file with three recorded chunks."""
    path = tmp_path / "telemetry.json"
    recorder = TelemetryRecorder(JsonFileTelemetryStore(path), TelemetrySettings(path=path))
    recorder.record(make_result("chat"))
    recorder.record(make_result("chat", status="fallback", fallback_reason="timeout"))
    recorder.record(make_result("other"))
    return path


def test_main_no_args() -> None:
    """Test the main function with no arguments."""
    result = runner.invoke(app)
    assert "No command specified" in result.stdout
    assert "Usage" in result.stdout


def test_help() -> None:
    """Test that every command is registered."""
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for command in ("usage", "zones", "compress", "logs", "stats", "insights", "clear", "serve"):
        assert command in result.stdout


def test_usage_json(transcript_file: Path, config_file: Path) -> None:
    """Test the usage command."""
    result = runner.invoke(
        app,
        ["usage", str(transcript_file), *MODEL_ARGS, "--max-context-tokens", "1000", "--json", "--config", str(config_file)],
    )
    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["max_tokens"] == 1000
    assert 0 < data["total_tokens"] < 1000
    assert data["utilization_pct"] == pytest.approx(data["total_tokens"] / 10)


def test_usage_panel(transcript_file: Path, config_file: Path) -> None:
    """Test the human-readable usage output."""
    result = runner.invoke(
        app,
        ["usage", str(transcript_file), *MODEL_ARGS, "--max-context-tokens", "100", "--config", str(config_file)],
    )
    assert result.exit_code == 0, result.output
    assert "Context usage: chat" in result.stdout


def test_zones_json(transcript_file: Path, config_file: Path) -> None:
    """Test the zones command."""
    result = runner.invoke(
        app,
        ["zones", str(transcript_file), *MODEL_ARGS, "--max-context-tokens", "50", "--json", "--config", str(config_file)],
    )
    assert result.exit_code == 0, result.output
    zones = json.loads(result.stdout)
    assert [zone["zone"] for zone in zones] == ["recent", "midTerm", "archive"]
    ids = [entry_id for zone in reversed(zones) for entry_id in zone["entries"]]
    assert ids == [f"m{i}" for i in range(20)]


def test_invalid_transcript(tmp_path: Path, config_file: Path) -> None:
    """Test that a broken transcript exits with an error."""
    path = tmp_path / "bad.json"
    path.write_text("{nope")
    result = runner.invoke(app, ["usage", str(path), *MODEL_ARGS, "--config", str(config_file)])
    assert result.exit_code == 1
    assert "Error" in result.output


def test_compress_writes_summaries(
    transcript_file: Path,
    config_file: Path,
    tmp_path: Path,
) -> None:
    """Test compressing without backends: truncation, telemetry and write-back."""
    telemetry_path = tmp_path / "telemetry.json"
    original = json.loads(transcript_file.read_text())
    result = runner.invoke(
        app,
        [
            "compress",
            str(transcript_file),
            *MODEL_ARGS,
            "--max-context-tokens",
            "50",
            "--telemetry-path",
            str(telemetry_path),
            "--config",
            str(config_file),
        ],
    )
    assert result.exit_code == 0, result.output
    assert "No summarization backend is configured" in result.stdout
    assert "Summaries written to" in result.stdout

    data = json.loads(transcript_file.read_text())
    assert [e["content"] for e in data["entries"]] == [e["content"] for e in original["entries"]]
    assert any("summary" in e for e in data["entries"])
    assert "summary" not in data["entries"][-1]

    telemetry = json.loads(telemetry_path.read_text())
    assert telemetry["entries"]
    assert all(e["backend_id"] == "truncation" for e in telemetry["entries"])


def test_compress_dry_run(transcript_file: Path, config_file: Path, tmp_path: Path) -> None:
    """Test that --dry-run leaves the transcript untouched."""
    before = transcript_file.read_text()
    result = runner.invoke(
        app,
        [
            "compress",
            str(transcript_file),
            *MODEL_ARGS,
            "--max-context-tokens",
            "50",
            "--dry-run",
            "--quiet",
            "--telemetry-path",
            str(tmp_path / "telemetry.json"),
            "--config",
            str(config_file),
        ],
    )
    assert result.exit_code == 0, result.output
    assert transcript_file.read_text() == before


def test_compress_nothing_to_do(transcript_file: Path, config_file: Path, tmp_path: Path) -> None:
    """Test a transcript that already fits."""
    result = runner.invoke(
        app,
        [
            "compress",
            str(transcript_file),
            *MODEL_ARGS,
            "--max-context-tokens",
            "100000",
            "--telemetry-path",
            str(tmp_path / "telemetry.json"),
            "--config",
            str(config_file),
        ],
    )
    assert result.exit_code == 0, result.output
    assert "nothing to do" in result.stdout


def test_logs_json(telemetry_file: Path, config_file: Path) -> None:
    """Test the logs command."""
    result = runner.invoke(
        app,
        ["logs", "--conversation-id", "chat", "--json", "--telemetry-path", str(telemetry_file), "--config", str(config_file)],
    )
    assert result.exit_code == 0, result.output
    logs = json.loads(result.stdout)
    assert [log["status"] for log in logs] == ["success", "fallback"]


def test_logs_limit(telemetry_file: Path, config_file: Path) -> None:
    """Test that --limit keeps the newest entries."""
    result = runner.invoke(
        app,
        ["logs", "-n", "1", "--json", "--telemetry-path", str(telemetry_file), "--config", str(config_file)],
    )
    assert [log["conversation_id"] for log in json.loads(result.stdout)] == ["other"]


def test_logs_empty(tmp_path: Path, config_file: Path) -> None:
    """Test the logs command without telemetry."""
    result = runner.invoke(
        app,
        ["logs", "--telemetry-path", str(tmp_path / "none.json"), "--config", str(config_file)],
    )
    assert result.exit_code == 0
    assert "No telemetry recorded yet" in result.stdout


def test_stats_json(telemetry_file: Path, config_file: Path) -> None:
    """Test the stats command."""
    result = runner.invoke(
        app,
        ["stats", "chat", "--json", "--telemetry-path", str(telemetry_file), "--config", str(config_file)],
    )
    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["total_operations"] == 2
    assert data["success_rate"] == 50.0


def test_insights(telemetry_file: Path, config_file: Path) -> None:
    """Test the insights command."""
    result = runner.invoke(
        app,
        ["insights", "chat", "--telemetry-path", str(telemetry_file), "--config", str(config_file)],
    )
    assert result.exit_code == 0, result.output
    assert "Low success rate" in result.stdout


def test_clear(telemetry_file: Path, config_file: Path) -> None:
    """Test clearing one conversation."""
    result = runner.invoke(
        app,
        ["clear", "chat", "--yes", "--telemetry-path", str(telemetry_file), "--config", str(config_file)],
    )
    assert result.exit_code == 0, result.output
    remaining = json.loads(telemetry_file.read_text())["entries"]
    assert [e["conversation_id"] for e in remaining] == ["other"]


def test_clear_aborted(telemetry_file: Path, config_file: Path) -> None:
    """Test that declining the prompt keeps the telemetry."""
    result = runner.invoke(
        app,
        ["clear", "--telemetry-path", str(telemetry_file), "--config", str(config_file)],
        input="n\n",
    )
    assert result.exit_code == 1
    assert len(json.loads(telemetry_file.read_text())["entries"]) == 3


@patch("uvicorn.run")
def test_serve(mock_uvicorn_run: pytest.MagicMock, telemetry_file: Path, config_file: Path) -> None:
    """Test the serve command."""
    result = runner.invoke(
        app,
        ["serve", "--port", "61337", "--telemetry-path", str(telemetry_file), "--config", str(config_file)],
    )
    assert result.exit_code == 0, result.output
    assert "Starting context-tiers debug API" in result.stdout
    mock_uvicorn_run.assert_called_once()
    assert mock_uvicorn_run.call_args.kwargs["port"] == 61337
