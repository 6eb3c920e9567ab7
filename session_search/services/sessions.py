"""Session listing, retrieval, and summary views."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from session_search.date_utils import DateRange, sort_epoch
from session_search.models import (
    FullMessageOutput,
    MinimalMessageOutput,
    SessionDetail,
    SessionInfo,
    SessionListResponse,
    SessionMessageOutput,
    SessionSummary,
    StandardMessageOutput,
)
from session_search.parsers.content import (
    Content,
    extract_text,
    extract_tool_calls,
    has_tool_marker,
)
from session_search.parsers.projects import SessionFile, iter_session_files, locate_session
from session_search.parsers.sessions import SessionFacts, iter_records, summarize_session
from session_search.services.pagination import clamp_limit, paginate

logger = logging.getLogger("session_search.services")

SESSION_FORMATS = ("markdown", "json", "full", "standard", "minimal")
MAX_MESSAGE_PAGE = 200
SUMMARY_FALLBACK_CHARS = 200
_LIST_SCAN_FACTOR = 10


def session_info(session: SessionFile, facts: SessionFacts, size_bytes: int = 0) -> SessionInfo:
    started_at = facts.started_at or ""
    return SessionInfo(
        sessionId=session.session_id,
        project=session.project,
        summary=facts.summary,
        messageCount=facts.message_count,
        startedAt=started_at,
        lastActivityAt=facts.last_activity_at or started_at,
        sizeBytes=size_bytes,
        gitBranch=facts.git_branch,
    )


def _load_session_info(session: SessionFile) -> SessionInfo | None:
    try:
        size_bytes = session.path.stat().st_size
        facts = summarize_session(session.path)
    except OSError:
        return None
    if not facts.is_valid:
        return None
    return session_info(session, facts, size_bytes)


async def load_session_info(session: SessionFile) -> SessionInfo | None:
    """Derive the session view for one file, or None if unreadable/invalid."""
    return await asyncio.to_thread(_load_session_info, session)


async def list_sessions(
    claude_home: Path,
    *,
    project: str | None = None,
    since: str | None = None,
    until: str | None = None,
    sort_by: str = "date",
    sort_order: str = "desc",
    limit: int = 50,
    offset: int = 0,
) -> SessionListResponse:
    date_range = DateRange.from_args(since, until)
    limit = max(1, limit)
    offset = max(0, offset)
    # Soft ceiling on sessions accumulated before sorting.
    scan_cap = (offset + limit) * _LIST_SCAN_FACTOR

    sessions: list[SessionInfo] = []
    async for session in iter_session_files(claude_home, project):
        info = await load_session_info(session)
        if info is None or not date_range.contains(info.startedAt):
            continue
        sessions.append(info)
        if len(sessions) >= scan_cap:
            break

    descending = sort_order != "asc"
    if sort_by == "size":
        sessions.sort(key=lambda info: info.sizeBytes, reverse=descending)
    else:
        sessions.sort(key=lambda info: sort_epoch(info.startedAt), reverse=descending)

    page = paginate(sessions, offset, limit)
    logger.debug("list_sessions gathered %d sessions (cap %d)", len(sessions), scan_cap)
    return SessionListResponse(sessions=page.items, total=page.total, hasMore=page.has_more)


@dataclass(frozen=True)
class _RawMessage:
    role: str
    timestamp: str
    content: Content | None
    raw_content: object


def _replay_session(session: SessionFile) -> tuple[SessionFacts, list[_RawMessage]]:
    facts = SessionFacts()
    messages: list[_RawMessage] = []
    for record in iter_records(session.path):
        facts.observe(record)
        if record.is_message and record.has_message:
            messages.append(_RawMessage(
                role=record.kind,
                timestamp=record.timestamp or "",
                content=record.content,
                raw_content=record.raw_content,
            ))
    return facts, messages


def _legacy_messages(messages: list[_RawMessage], include_tool_calls: bool) -> list[SessionMessageOutput]:
    legacy = [
        SessionMessageOutput(
            role=msg.role,
            content=extract_text(msg.content, verbose=True),
            timestamp=msg.timestamp,
        )
        for msg in messages
    ]
    return [msg for msg in legacy if include_tool_calls or not has_tool_marker(msg.content)]


def _render_markdown(
    session: SessionFile,
    facts: SessionFacts,
    messages: list[SessionMessageOutput],
) -> str:
    lines = [
        f"# Session: {session.session_id}",
        f"**Project:** {session.project}",
    ]
    if facts.summary:
        lines.append(f"**Summary:** {facts.summary}")
    if facts.git_branch:
        lines.append(f"**Branch:** {facts.git_branch}")
    lines.append(f"**Started:** {facts.started_at}")
    lines.append(f"**Last Activity:** {facts.last_activity_at}")
    lines.append("")

    for msg in messages:
        speaker = "User" if msg.role == "user" else "Assistant"
        lines.append(f"## {speaker} ({msg.timestamp})")
        lines.append(msg.content)
        lines.append("")
    return "\n".join(lines)


def _tool_names(content: Content | None) -> list[str] | None:
    names = [call.name for call in extract_tool_calls(content)]
    return names or None


def _format_messages(
    session: SessionFile,
    facts: SessionFacts,
    page: list[_RawMessage],
    fmt: str,
    include_tool_calls: bool,
) -> str | list[dict]:
    if fmt in ("markdown", "json"):
        legacy = _legacy_messages(page, include_tool_calls)
        if fmt == "markdown":
            return _render_markdown(session, facts, legacy)
        rendered = legacy
    elif fmt == "full":
        rendered = [
            FullMessageOutput(role=msg.role, timestamp=msg.timestamp, content=msg.raw_content)
            for msg in page
        ]
    elif fmt == "minimal":
        rendered = [
            MinimalMessageOutput(
                role=msg.role,
                timestamp=msg.timestamp,
                contentLength=len(extract_text(msg.content)),
                toolCalls=_tool_names(msg.content),
            )
            for msg in page
        ]
    else:
        rendered = [
            StandardMessageOutput(
                role=msg.role,
                timestamp=msg.timestamp,
                text=extract_text(msg.content) or None,
                toolCalls=_tool_names(msg.content),
            )
            for msg in page
        ]
    return [item.model_dump(exclude_none=True) for item in rendered]


async def get_session(
    claude_home: Path,
    session_id: str,
    *,
    fmt: str = "standard",
    include_tool_calls: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> SessionDetail:
    """Replay one session and render a page of its messages."""
    if fmt not in SESSION_FORMATS:
        fmt = "standard"
    limit = clamp_limit(limit, MAX_MESSAGE_PAGE)
    offset = max(0, offset)

    session = await locate_session(claude_home, session_id)
    facts, messages = await asyncio.to_thread(_replay_session, session)
    facts.require_valid()

    page = paginate(messages, offset, limit)
    started_at = facts.started_at or ""
    return SessionDetail(
        sessionId=session.session_id,
        project=session.project,
        summary=facts.summary,
        gitBranch=facts.git_branch,
        startedAt=started_at,
        lastActivityAt=facts.last_activity_at or started_at,
        data=_format_messages(session, facts, page.items, fmt, include_tool_calls),
        total=page.total,
        hasMore=page.has_more,
    )


def _first_user_text(session: SessionFile) -> str:
    for record in iter_records(session.path):
        if record.kind != "user" or not record.has_message:
            continue
        text = extract_text(record.content)
        if text.strip():
            return text[:SUMMARY_FALLBACK_CHARS]
    return ""


async def get_session_summary(claude_home: Path, session_id: str) -> SessionSummary:
    """Recorded summary, or a synthetic one from the first user message."""
    session = await locate_session(claude_home, session_id)
    facts = await asyncio.to_thread(summarize_session, session.path)
    facts.require_valid()

    summary_source = "recorded"
    summary_text = facts.summary
    if not summary_text:
        summary_text = await asyncio.to_thread(_first_user_text, session)
        summary_source = "first_user_message"
    if not summary_text:
        summary_text = "No summary available"
        summary_source = "none"

    started_at = facts.started_at or ""
    return SessionSummary(
        sessionId=session.session_id,
        summary=summary_text,
        summarySource=summary_source,
        project=session.project,
        gitBranch=facts.git_branch,
        messageCount=facts.message_count,
        startedAt=started_at,
        lastActivityAt=facts.last_activity_at or started_at,
    )
