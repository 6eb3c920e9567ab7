"""Stream JSONL session logs into records and folded session facts."""
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Iterator

from session_search.errors import InvalidSessionError
from session_search.parsers.content import Content, decode_content

MESSAGE_KINDS = frozenset({"user", "assistant"})


@dataclass(frozen=True)
class SessionRecord:
    kind: str
    timestamp: str | None = None
    git_branch: str | None = None
    session_id: str | None = None
    role: str | None = None
    content: Content | None = None
    raw_content: Any = None
    summary: str | None = None
    has_message: bool = False

    @property
    def is_message(self) -> bool:
        return self.kind in MESSAGE_KINDS


def _optional_str(value: Any) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


def decode_record(line: str | bytes) -> SessionRecord | None:
    """Decode one line, or return None when it is not a JSON object."""
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

    kind = entry.get("type")
    message = entry.get("message")
    has_message = isinstance(message, dict)
    raw_content = message.get("content") if has_message else None

    return SessionRecord(
        kind=kind if isinstance(kind, str) else "",
        timestamp=_optional_str(entry.get("timestamp")),
        git_branch=_optional_str(entry.get("gitBranch")),
        session_id=_optional_str(entry.get("sessionId")),
        role=_optional_str(message.get("role")) if has_message else None,
        content=decode_content(raw_content) if has_message else None,
        raw_content=raw_content,
        summary=_optional_str(entry.get("summary")),
        has_message=has_message,
    )


def decode_lines(lines: Iterable[str | bytes]) -> Iterator[SessionRecord]:
    """Decode lines best-effort: blank and malformed lines are dropped."""
    for line in lines:
        if not line.strip():
            continue
        record = decode_record(line)
        if record is not None:
            yield record


def iter_records(path: Path) -> Iterator[SessionRecord]:
    """Single forward pass over a session file."""
    with path.open("rb") as handle:
        yield from decode_lines(handle)


def read_records(path: Path) -> list[SessionRecord]:
    return list(iter_records(path))


@dataclass
class SessionFacts:
    """Session-level facts folded incrementally from records in file order."""

    started_at: str | None = None
    last_activity_at: str | None = None
    git_branch: str | None = None
    summary: str | None = None
    user_messages: int = 0
    assistant_messages: int = 0

    @property
    def message_count(self) -> int:
        return self.user_messages + self.assistant_messages

    @property
    def is_valid(self) -> bool:
        return self.started_at is not None

    def observe(self, record: SessionRecord) -> None:
        if record.kind == "summary":
            if record.summary:
                self.summary = record.summary
            return
        if not record.is_message:
            return

        if record.kind == "user":
            self.user_messages += 1
        else:
            self.assistant_messages += 1

        if record.timestamp:
            if self.started_at is None:
                self.started_at = record.timestamp
            self.last_activity_at = record.timestamp

        # First branch wins even if the session later switches branches.
        if record.git_branch and self.git_branch is None:
            self.git_branch = record.git_branch

    def require_valid(self) -> None:
        if not self.is_valid:
            raise InvalidSessionError()


def fold_records(records: Iterable[SessionRecord]) -> SessionFacts:
    facts = SessionFacts()
    for record in records:
        facts.observe(record)
    return facts


def summarize_session(path: Path) -> SessionFacts:
    """Fold a session file without materialising its records."""
    return fold_records(iter_records(path))
