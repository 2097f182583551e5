"""Tests for transcript files."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from context_tiers.errors import ConfigurationError
from context_tiers.transcript import Transcript, attach_summary, load_transcript, save_transcript
from tests.mocks.transcript import make_entry

if TYPE_CHECKING:
    from pathlib import Path


def test_load_object(tmp_path: Path) -> None:
    path = tmp_path / "chat.json"
    path.write_text(
        json.dumps(
            {
                "conversation_id": "abc",
                "model": {"id": "gpt-4o", "context_length_tokens": 128000},
                "entries": [{"id": "1", "role": "user", "content": "hi"}],
            },
        ),
    )
    transcript = load_transcript(path)
    assert transcript.conversation_id == "abc"
    assert transcript.model.context_length_tokens == 128000
    assert transcript.entries[0].content == "hi"


def test_load_bare_list_uses_file_stem(tmp_path: Path) -> None:
    path = tmp_path / "story-42.json"
    path.write_text(json.dumps([{"id": "1", "role": "assistant", "content": "Once upon a time"}]))
    transcript = load_transcript(path)
    assert transcript.conversation_id == "story-42"
    assert transcript.model is None


@pytest.mark.parametrize(
    ("content", "match"),
    [
        ("{broken", "not valid JSON"),
        ('{"entries": []}', "Invalid transcript"),
        ('[{"id": "1", "role": "narrator", "content": "x"}]', "Invalid transcript"),
    ],
)
def test_invalid_files(tmp_path: Path, content: str, match: str) -> None:
    path = tmp_path / "chat.json"
    path.write_text(content)
    with pytest.raises(ConfigurationError, match=match):
        load_transcript(path)


def test_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="not found"):
        load_transcript(tmp_path / "nope.json")


def test_save_keeps_content_and_adds_summaries(tmp_path: Path) -> None:
    path = tmp_path / "chat.json"
    entry = make_entry("1", "The original words.")
    transcript = Transcript(conversation_id="abc", entries=[entry, make_entry("2", "More")])
    attach_summary(entry, "Words.", 0.4)

    save_transcript(path, transcript)

    data = json.loads(path.read_text())
    assert data["entries"][0]["content"] == "The original words."
    assert data["entries"][0]["summary"] == "Words."
    assert data["entries"][0]["summary_retention"] == 0.4
    assert "summary" not in data["entries"][1]
    assert load_transcript(path) == transcript


def test_provisional_summary() -> None:
    entry = make_entry("1", "text")
    attach_summary(entry, "t", None)
    assert entry.effective_text == "t"
    assert not entry.is_compressed
