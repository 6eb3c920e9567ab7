"""Scan the flat prompt log (``<claude_home>/history.jsonl``)."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Iterator

HISTORY_FILENAME = "history.jsonl"


@dataclass(frozen=True)
class PromptEntry:
    display: str
    timestamp: int
    project: str
    pasted_contents: dict[str, Any] = field(default_factory=dict)


def history_path(claude_home: Path) -> Path:
    return claude_home / HISTORY_FILENAME


def decode_prompt_entry(line: str | bytes) -> PromptEntry | None:
    if isinstance(line, bytes):
        try:
            line = line.decode("utf-8")
        except UnicodeDecodeError:
            return None
    try:
        entry = json.loads(line)
    except json.JSONDecodeError:
        return None
    if not isinstance(entry, dict):
        return None

    display = entry.get("display")
    timestamp = entry.get("timestamp")
    if not isinstance(display, str):
        return None
    if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
        return None
    project = entry.get("project")
    pasted = entry.get("pastedContents")
    return PromptEntry(
        display=display,
        timestamp=int(timestamp),
        project=project if isinstance(project, str) else "",
        pasted_contents=pasted if isinstance(pasted, dict) else {},
    )


def decode_prompt_lines(lines: Iterable[str | bytes]) -> Iterator[PromptEntry]:
    for line in lines:
        if not line.strip():
            continue
        entry = decode_prompt_entry(line)
        if entry is not None:
            yield entry


def iter_prompt_entries(path: Path) -> Iterator[PromptEntry]:
    with path.open("rb") as handle:
        yield from decode_prompt_lines(handle)
