"""Free-text search over the prompt log and session message content."""
from __future__ import annotations

import asyncio
from collections import deque
from pathlib import Path

from session_search.date_utils import DateRange, ms_to_iso, sort_epoch
from session_search.errors import HistoryUnreadableError
from session_search.models import (
    ContentSearchResponse,
    ContentSearchResult,
    PromptSearchResponse,
    PromptSearchResult,
)
from session_search.parsers.content import extract_text
from session_search.parsers.history import history_path, iter_prompt_entries
from session_search.parsers.projects import SessionFile, iter_session_files, project_matches
from session_search.parsers.sessions import SessionFacts, iter_records

SEARCH_ROLES = ("user", "assistant", "both")
CONTENT_PREVIEW_CHARS = 500
MATCH_CONTEXT_CHARS = 100


def _scan_prompts(
    path: Path,
    query_lower: str,
    project: str | None,
    date_range: DateRange,
    limit: int,
) -> tuple[list[PromptSearchResult], int]:
    newest: deque[PromptSearchResult] = deque(maxlen=limit)
    total = 0
    for entry in iter_prompt_entries(path):
        if not date_range.contains_epoch(entry.timestamp / 1000.0):
            continue
        if not project_matches(entry.project, project):
            continue
        if query_lower not in entry.display.lower():
            continue
        total += 1
        newest.append(PromptSearchResult(
            prompt=entry.display,
            timestamp=ms_to_iso(entry.timestamp),
            project=entry.project,
        ))
    results = list(newest)
    results.reverse()
    return results, total


async def search_prompts(
    claude_home: Path,
    query: str,
    *,
    project: str | None = None,
    since: str | None = None,
    until: str | None = None,
    limit: int = 50,
) -> PromptSearchResponse:
    """Case-insensitive substring search over the prompt log, newest first.

    ``total`` counts every matching prompt; ``results`` holds the newest
    ``limit`` of them.
    """
    date_range = DateRange.from_args(since, until)
    path = history_path(claude_home)
    try:
        results, total = await asyncio.to_thread(
            _scan_prompts, path, query.lower(), project, date_range, max(1, limit)
        )
    except OSError as exc:
        raise HistoryUnreadableError(exc.strerror or str(exc)) from exc
    return PromptSearchResponse(results=results, total=total)


def match_context(content: str, query: str, context_length: int = MATCH_CONTEXT_CHARS) -> str:
    """Window of ``context_length`` characters either side of the first match."""
    match_index = content.lower().find(query.lower())
    if match_index == -1:
        return content[: context_length * 2]

    start = max(0, match_index - context_length)
    end = min(len(content), match_index + len(query) + context_length)
    context = content[start:end]
    if start > 0:
        context = "..." + context
    if end < len(content):
        context = context + "..."
    return context


def _scan_session_content(
    session: SessionFile,
    query: str,
    role: str,
    date_range: DateRange,
    remaining: int,
) -> list[ContentSearchResult]:
    query_lower = query.lower()
    facts = SessionFacts()
    hits: list[ContentSearchResult] = []
    for record in iter_records(session.path):
        facts.observe(record)
        if len(hits) >= remaining:
            # Read only as far as needed to establish validity.
            if facts.is_valid:
                break
            continue
        if not record.is_message or not record.has_message:
            continue
        if role != "both" and record.kind != role:
            continue
        if record.timestamp and not date_range.contains(record.timestamp):
            continue

        text = extract_text(record.content)
        if query_lower not in text.lower():
            continue
        hits.append(ContentSearchResult(
            sessionId=session.session_id,
            project=session.project,
            role=record.kind,
            content=text[:CONTENT_PREVIEW_CHARS],
            timestamp=record.timestamp or "",
            matchContext=match_context(text, query),
        ))

    # A session that never carried a timestamp is invalid and contributes nothing.
    if not facts.is_valid:
        return []
    return hits


async def search_session_content(
    claude_home: Path,
    query: str,
    *,
    project: str | None = None,
    role: str = "both",
    since: str | None = None,
    until: str | None = None,
    limit: int = 20,
) -> ContentSearchResponse:
    """One result per matching user/assistant message.

    ``limit`` is a global cap: once reached, neither the current file nor any
    further session is scanned.
    """
    if role not in SEARCH_ROLES:
        role = "both"
    limit = max(1, limit)
    date_range = DateRange.from_args(since, until)

    results: list[ContentSearchResult] = []
    async for session in iter_session_files(claude_home, project):
        try:
            hits = await asyncio.to_thread(
                _scan_session_content, session, query, role, date_range, limit - len(results)
            )
        except OSError:
            continue
        results.extend(hits)
        if len(results) >= limit:
            break

    results.sort(key=lambda result: sort_epoch(result.timestamp), reverse=True)
    return ContentSearchResponse(results=results[:limit], total=len(results), query=query)
