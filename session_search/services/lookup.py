"""Session indexes by touched file and by git branch.

Both lookups emit at most one row per session: the first matching file
operation, or the session's first recorded branch.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path

from session_search.date_utils import sort_epoch
from session_search.models import (
    BranchSearchResponse,
    BranchSessionResult,
    FileAccessResult,
    FileSearchResponse,
)
from session_search.parsers.content import extract_tool_calls, tool_file_path
from session_search.parsers.projects import SessionFile, iter_session_files
from session_search.parsers.sessions import SessionFacts, iter_records
from session_search.services.sessions import load_session_info

FILE_TOOLS = ("Read", "Write", "Edit", "Glob", "Grep")
FILE_OPERATIONS = ("Read", "Write", "Edit", "all")
_BRANCH_SCAN_FACTOR = 2


@dataclass(frozen=True)
class _FileMatch:
    file_path: str
    operation: str
    timestamp: str


def _scan_file_access(
    session: SessionFile,
    file_path_lower: str,
    operation: str,
) -> tuple[SessionFacts, _FileMatch | None]:
    facts = SessionFacts()
    match: _FileMatch | None = None
    # Keep reading after the first match so summary and branch are complete.
    for record in iter_records(session.path):
        facts.observe(record)
        if match is not None or record.kind != "assistant" or not record.has_message:
            continue
        for call in extract_tool_calls(record.content, FILE_TOOLS):
            if operation != "all" and call.name != operation:
                continue
            touched = tool_file_path(call.input)
            if touched and file_path_lower in touched.lower():
                match = _FileMatch(file_path=touched, operation=call.name, timestamp=record.timestamp or "")
                break
    return facts, match


async def find_sessions_by_file(
    claude_home: Path,
    file_path: str,
    *,
    operation: str = "all",
    project: str | None = None,
    limit: int = 20,
) -> FileSearchResponse:
    if operation not in FILE_OPERATIONS:
        operation = "all"
    limit = max(1, limit)
    file_path_lower = file_path.lower()

    results: list[FileAccessResult] = []
    seen_sessions: set[str] = set()
    async for session in iter_session_files(claude_home, project):
        if session.session_id in seen_sessions:
            continue
        try:
            facts, match = await asyncio.to_thread(_scan_file_access, session, file_path_lower, operation)
        except OSError:
            continue
        if match is None or not facts.is_valid:
            continue

        seen_sessions.add(session.session_id)
        results.append(FileAccessResult(
            sessionId=session.session_id,
            project=session.project,
            summary=facts.summary,
            filePath=match.file_path,
            operation=match.operation,
            timestamp=match.timestamp,
            gitBranch=facts.git_branch,
        ))
        if len(results) >= limit:
            break

    results.sort(key=lambda result: sort_epoch(result.timestamp), reverse=True)
    return FileSearchResponse(results=results[:limit], total=len(results), searchedFile=file_path)


def branch_matches(branch: str, query: str, exact_match: bool) -> bool:
    if exact_match:
        return branch.lower() == query.lower()
    return query.lower() in branch.lower()


async def find_sessions_by_branch(
    claude_home: Path,
    branch: str,
    *,
    project: str | None = None,
    exact_match: bool = False,
    limit: int = 20,
) -> BranchSearchResponse:
    limit = max(1, limit)
    scan_cap = limit * _BRANCH_SCAN_FACTOR

    results: list[BranchSessionResult] = []
    seen_sessions: set[str] = set()
    async for session in iter_session_files(claude_home, project):
        if session.session_id in seen_sessions:
            continue
        info = await load_session_info(session)
        if info is None or not info.gitBranch:
            continue
        if not branch_matches(info.gitBranch, branch, exact_match):
            continue

        seen_sessions.add(session.session_id)
        results.append(BranchSessionResult(
            sessionId=info.sessionId,
            project=info.project,
            summary=info.summary,
            gitBranch=info.gitBranch,
            messageCount=info.messageCount,
            startedAt=info.startedAt,
            lastActivityAt=info.lastActivityAt,
            sizeBytes=info.sizeBytes,
        ))
        if len(results) >= scan_cap:
            break

    results.sort(key=lambda result: sort_epoch(result.startedAt), reverse=True)
    return BranchSearchResponse(
        results=results[:limit],
        total=len(results),
        searchedBranch=branch,
        exactMatch=exact_match,
    )
