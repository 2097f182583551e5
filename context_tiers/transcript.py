"""JSON transcript files: a stand-in for the external transcript store.

The engine only ever attaches summaries to existing entries. It never deletes,
reorders or rewrites ``content``.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field, ValidationError

from context_tiers.core.utils import atomic_write_text
from context_tiers.entities import ModelInfo, TranscriptEntry
from context_tiers.errors import ConfigurationError

if TYPE_CHECKING:
    from pathlib import Path


class Transcript(BaseModel):
    """A conversation as stored on disk."""

    conversation_id: str
    model: ModelInfo | None = None
    entries: list[TranscriptEntry] = Field(default_factory=list)


def load_transcript(path: Path) -> Transcript:
    """Load a transcript file.

    The file holds either a ``Transcript`` object or a bare list of entries, in
    which case the file stem becomes the conversation id.

    Raises:
        ConfigurationError: The file is missing or not a valid transcript.

    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        msg = f"Transcript file not found: {path}"
        raise ConfigurationError(msg) from e
    except json.JSONDecodeError as e:
        msg = f"Transcript file {path} is not valid JSON: {e}"
        raise ConfigurationError(msg) from e

    if isinstance(data, list):
        data = {"conversation_id": path.stem, "entries": data}
    try:
        return Transcript.model_validate(data)
    except ValidationError as e:
        msg = f"Invalid transcript {path}: {e}"
        raise ConfigurationError(msg) from e


def save_transcript(path: Path, transcript: Transcript) -> None:
    """Write the transcript back atomically."""
    atomic_write_text(path, transcript.model_dump_json(indent=2, exclude_none=True) + "\n")


def attach_summary(entry: TranscriptEntry, summary: str, retention_rate: float | None) -> None:
    """Attach a summary next to the entry's raw text.

    ``retention_rate`` is None for provisional summaries (e.g. truncation after
    an error), so that a later run compresses the entry again.
    """
    entry.summary = summary
    entry.summary_retention = retention_rate
