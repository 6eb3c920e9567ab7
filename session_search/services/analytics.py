"""Tool usage statistics, timelines, agent activity, and session comparison."""
from __future__ import annotations

import asyncio
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path

from session_search.date_utils import DateRange, duration_ms, format_duration, sort_epoch
from session_search.models import (
    AgentActivity,
    AgentSpawnInfo,
    AgentSpawnSummary,
    ComparisonSummary,
    MessageCount,
    SessionComparison,
    SessionStats,
    SessionTimeline,
    TimelineEvent,
    TimelineMessageCount,
    ToolUsage,
    ToolUsageStats,
    TopTool,
)
from session_search.parsers.content import (
    AGENT_TOOL_NAME,
    Blocks,
    agent_spawn_from_input,
    extract_agent_spawns,
    extract_text,
    extract_tool_calls,
    tool_file_path,
)
from session_search.parsers.projects import SessionFile, iter_session_files, locate_session
from session_search.parsers.sessions import SessionFacts, iter_records
from session_search.services.pagination import clamp_limit, paginate

TOOL_CATEGORIES: dict[str, tuple[str, ...]] = {
    "File Operations": ("Read", "Write", "Edit", "Glob", "Grep"),
    "Execution": ("Bash", "Task"),
    "Web": ("WebFetch", "WebSearch"),
    "Planning": ("TodoWrite", "EnterPlanMode", "ExitPlanMode"),
    "User Interaction": ("AskUserQuestion",),
}
OTHER_CATEGORY = "MCP & Other"
TOP_TOOLS = 10
TOOL_USAGE_ROWS = 20

TIMELINE_FORMATS = ("full", "standard", "minimal")
MAX_TIMELINE_PAGE = 200
MAX_AGENT_PAGE = 100
TIMELINE_TEXT_CHARS = 150
SUMMARY_DETAIL_CHARS = 100
BASH_DETAIL_CHARS = 50

_FILE_DETAIL_TOOLS = ("Read", "Write", "Edit")
_TRACKED_FILE_TOOLS = ("Read", "Write", "Edit")


# ── Tool usage statistics ──────────────────────────────────────────

@dataclass
class _SessionToolCounts:
    facts: SessionFacts
    counts: Counter = field(default_factory=Counter)


def _count_session_tools(session: SessionFile) -> _SessionToolCounts:
    tally = _SessionToolCounts(facts=SessionFacts())
    for record in iter_records(session.path):
        tally.facts.observe(record)
        if record.kind == "assistant" and record.has_message:
            for call in extract_tool_calls(record.content):
                tally.counts[call.name] += 1
    return tally


def categorize_tools(tool_names: list[str]) -> dict[str, list[str]]:
    categorized: dict[str, list[str]] = {}
    for category, members in TOOL_CATEGORIES.items():
        matching = [name for name in dict.fromkeys(tool_names) if name in members]
        if matching:
            categorized[category] = matching

    known = {name for members in TOOL_CATEGORIES.values() for name in members}
    uncategorized = [name for name in dict.fromkeys(tool_names) if name not in known]
    if uncategorized:
        categorized[OTHER_CATEGORY] = uncategorized
    return categorized


def build_tool_usage_stats(counts: Counter, sessions_analyzed: int) -> ToolUsageStats:
    usage = sorted(
        (ToolUsage(name=name, count=count) for name, count in counts.items()),
        key=lambda item: item.count,
        reverse=True,
    )
    total = sum(item.count for item in usage)
    top_tools = [
        TopTool(
            name=item.name,
            count=item.count,
            percentage=f"{item.count / total * 100:.1f}%" if total > 0 else "0%",
        )
        for item in usage[:TOP_TOOLS]
    ]
    return ToolUsageStats(
        totalToolCalls=total,
        uniqueTools=len(usage),
        sessionsAnalyzed=sessions_analyzed,
        toolUsage=usage[:TOOL_USAGE_ROWS],
        topTools=top_tools,
        toolsByCategory=categorize_tools([item.name for item in usage]),
    )


async def get_tool_usage_stats(
    claude_home: Path,
    *,
    session_id: str | None = None,
    project: str | None = None,
    since: str | None = None,
    until: str | None = None,
    limit: int = 10,
) -> ToolUsageStats:
    """Tool call frequencies for one session, or the most recent sessions.

    Without ``session_id`` the ``limit`` most recently started sessions that
    match the project/date filters and used at least one tool are analysed.
    """
    if session_id:
        session = await locate_session(claude_home, session_id)
        tally = await asyncio.to_thread(_count_session_tools, session)
        tally.facts.require_valid()
        return build_tool_usage_stats(tally.counts, 1)

    limit = max(1, limit)
    date_range = DateRange.from_args(since, until)
    candidates: list[_SessionToolCounts] = []
    async for session in iter_session_files(claude_home, project):
        try:
            tally = await asyncio.to_thread(_count_session_tools, session)
        except OSError:
            continue
        if not tally.facts.is_valid or not tally.counts:
            continue
        if not date_range.contains(tally.facts.started_at):
            continue
        candidates.append(tally)

    candidates.sort(key=lambda tally: sort_epoch(tally.facts.started_at), reverse=True)
    selected = candidates[:limit]
    merged: Counter = Counter()
    for tally in selected:
        merged.update(tally.counts)
    return build_tool_usage_stats(merged, len(selected))


# ── Timeline ───────────────────────────────────────────────────────

@dataclass
class _TimelineReplay:
    facts: SessionFacts
    events: list[TimelineEvent] = field(default_factory=list)
    user_messages: int = 0
    assistant_messages: int = 0
    tool_calls: int = 0
    agent_spawns: int = 0


def _tool_call_details(name: str, tool_input: dict) -> str:
    touched = tool_input.get("file_path")
    if name in _FILE_DETAIL_TOOLS and isinstance(touched, str) and touched:
        return f"{name}: {touched.split('/')[-1]}"
    command = tool_input.get("command")
    if name == "Bash" and isinstance(command, str) and command:
        return f"Bash: {command[:BASH_DETAIL_CHARS]}"
    return name


def _replay_timeline(session: SessionFile, include_content: bool) -> _TimelineReplay:
    replay = _TimelineReplay(facts=SessionFacts())
    events = replay.events
    for record in iter_records(session.path):
        replay.facts.observe(record)
        timestamp = record.timestamp or ""

        if record.kind == "summary" and record.summary:
            events.append(TimelineEvent(
                timestamp=timestamp,
                type="summary_update",
                details=f"Summary updated: {record.summary[:SUMMARY_DETAIL_CHARS]}",
                content=record.summary if include_content else None,
            ))
            continue
        if not record.is_message or not record.has_message:
            continue

        # Bare strings are reported whole; only joined block text is clipped.
        text_limit = TIMELINE_TEXT_CHARS if isinstance(record.content, Blocks) else None
        text = extract_text(record.content, separator=" ", limit=text_limit)
        if record.kind == "user":
            replay.user_messages += 1
            events.append(TimelineEvent(
                timestamp=timestamp,
                type="user_message",
                details=f"User message ({len(text)} chars)",
                content=text if include_content else None,
            ))
            continue

        replay.assistant_messages += 1
        if text:
            events.append(TimelineEvent(
                timestamp=timestamp,
                type="assistant_message",
                details=f"Assistant response ({len(text)} chars)",
                content=text if include_content else None,
            ))
        for call in extract_tool_calls(record.content):
            if call.name == AGENT_TOOL_NAME:
                replay.agent_spawns += 1
                spawn = agent_spawn_from_input(call.input)
                events.append(TimelineEvent(
                    timestamp=timestamp,
                    type="agent_spawn",
                    details=f"Spawned {spawn.subagent_type}: {spawn.description}",
                ))
            else:
                replay.tool_calls += 1
                events.append(TimelineEvent(
                    timestamp=timestamp,
                    type="tool_call",
                    details=_tool_call_details(call.name, call.input),
                ))
    return replay


async def get_session_timeline(
    claude_home: Path,
    session_id: str,
    *,
    include_content: bool = False,
    fmt: str = "standard",
    limit: int = 50,
    offset: int = 0,
) -> SessionTimeline:
    if fmt not in TIMELINE_FORMATS:
        fmt = "standard"
    limit = clamp_limit(limit, MAX_TIMELINE_PAGE)
    offset = max(0, offset)

    session = await locate_session(claude_home, session_id)
    replay = await asyncio.to_thread(_replay_timeline, session, include_content)
    facts = replay.facts
    facts.require_valid()

    page = paginate(replay.events, offset, limit)
    if fmt == "minimal":
        data: list[TimelineEvent] | dict[str, int] = dict(Counter(event.type for event in replay.events))
        has_more = False
    else:
        data = page.items
        has_more = page.has_more

    started_at = facts.started_at or ""
    ended_at = facts.last_activity_at or started_at
    return SessionTimeline(
        sessionId=session.session_id,
        project=session.project,
        summary=facts.summary,
        gitBranch=facts.git_branch,
        duration=format_duration(duration_ms(started_at, ended_at)),
        startedAt=started_at,
        endedAt=ended_at,
        eventCount=page.total,
        messageCount=TimelineMessageCount(user=replay.user_messages, assistant=replay.assistant_messages),
        toolCallCount=replay.tool_calls,
        agentSpawnCount=replay.agent_spawns,
        data=data,
        total=page.total,
        hasMore=has_more,
    )


# ── Agent activity ─────────────────────────────────────────────────

def _collect_agent_spawns(session: SessionFile) -> tuple[SessionFacts, list[AgentSpawnInfo]]:
    facts = SessionFacts()
    spawns: list[AgentSpawnInfo] = []
    for record in iter_records(session.path):
        facts.observe(record)
        if record.kind != "assistant" or not record.has_message:
            continue
        for spawn in extract_agent_spawns(record.content):
            spawns.append(AgentSpawnInfo(
                subagentType=spawn.subagent_type,
                description=spawn.description,
                timestamp=record.timestamp or "",
                prompt=spawn.prompt,
            ))
    return facts, spawns


async def get_agent_activity(
    claude_home: Path,
    session_id: str,
    *,
    limit: int = 20,
    offset: int = 0,
) -> AgentActivity:
    """Subagents spawned via the Task tool, in file order."""
    limit = clamp_limit(limit, MAX_AGENT_PAGE)
    offset = max(0, offset)

    session = await locate_session(claude_home, session_id)
    facts, spawns = await asyncio.to_thread(_collect_agent_spawns, session)
    facts.require_valid()

    type_counts = Counter(spawn.subagentType for spawn in spawns)
    page = paginate(spawns, offset, limit)
    return AgentActivity(
        sessionId=session.session_id,
        project=session.project,
        summary=facts.summary,
        data=page.items,
        total=page.total,
        hasMore=page.has_more,
        uniqueAgentTypes=list(type_counts),
        agentTypeCounts=dict(type_counts),
    )


# ── Comparison ─────────────────────────────────────────────────────

def _collect_session_stats(session: SessionFile, include_files: bool) -> SessionStats:
    facts = SessionFacts()
    tools_used: Counter = Counter()
    agent_spawns: list[AgentSpawnSummary] = []
    files_accessed: dict[str, None] = {}

    for record in iter_records(session.path):
        facts.observe(record)
        if record.kind != "assistant" or not record.has_message:
            continue
        for call in extract_tool_calls(record.content):
            tools_used[call.name] += 1
            if call.name == AGENT_TOOL_NAME:
                spawn = agent_spawn_from_input(call.input)
                agent_spawns.append(AgentSpawnSummary(type=spawn.subagent_type, description=spawn.description))
            touched = tool_file_path(call.input)
            if touched and call.name in _TRACKED_FILE_TOOLS:
                files_accessed[touched] = None

    facts.require_valid()
    started_at = facts.started_at or ""
    ended_at = facts.last_activity_at or started_at
    elapsed = duration_ms(started_at, ended_at)
    return SessionStats(
        sessionId=session.session_id,
        project=session.project,
        summary=facts.summary,
        gitBranch=facts.git_branch,
        startedAt=started_at,
        endedAt=ended_at,
        durationMs=elapsed,
        durationFormatted=format_duration(elapsed),
        messageCount=MessageCount(
            user=facts.user_messages,
            assistant=facts.assistant_messages,
            total=facts.message_count,
        ),
        toolsUsed=dict(tools_used),
        uniqueToolCount=len(tools_used),
        totalToolCalls=sum(tools_used.values()),
        agentSpawns=agent_spawns,
        filesAccessed=list(files_accessed) if include_files else None,
    )


async def _session_stats(claude_home: Path, session_id: str, include_files: bool) -> SessionStats:
    session = await locate_session(claude_home, session_id)
    return await asyncio.to_thread(_collect_session_stats, session, include_files)


def compare_stats(stats1: SessionStats, stats2: SessionStats, include_files: bool) -> ComparisonSummary:
    id1, id2 = stats1.sessionId, stats2.sessionId
    tools1 = list(stats1.toolsUsed)
    tools2 = list(stats2.toolsUsed)

    shared_files: list[str] = []
    if include_files and stats1.filesAccessed is not None and stats2.filesAccessed is not None:
        files2 = set(stats2.filesAccessed)
        shared_files = [path for path in stats1.filesAccessed if path in files2]

    return ComparisonSummary(
        longerSession=id1 if stats1.durationMs > stats2.durationMs else id2,
        durationDifference=format_duration(abs(stats1.durationMs - stats2.durationMs)),
        moreMessages=id1 if stats1.messageCount.total > stats2.messageCount.total else id2,
        messageDifference=abs(stats1.messageCount.total - stats2.messageCount.total),
        moreToolCalls=id1 if stats1.totalToolCalls > stats2.totalToolCalls else id2,
        toolCallDifference=abs(stats1.totalToolCalls - stats2.totalToolCalls),
        sharedTools=[name for name in tools1 if name in stats2.toolsUsed],
        uniqueToSession1=[name for name in tools1 if name not in stats2.toolsUsed],
        uniqueToSession2=[name for name in tools2 if name not in stats1.toolsUsed],
        sharedFiles=shared_files,
    )


async def compare_sessions(
    claude_home: Path,
    session_id1: str,
    session_id2: str,
    *,
    include_files: bool = False,
) -> SessionComparison:
    """Aggregate both sessions concurrently and diff them."""
    outcome1, outcome2 = await asyncio.gather(
        _session_stats(claude_home, session_id1, include_files),
        _session_stats(claude_home, session_id2, include_files),
        return_exceptions=True,
    )
    # Report the first session's failure first, regardless of completion order.
    for outcome in (outcome1, outcome2):
        if isinstance(outcome, BaseException):
            raise outcome
    return SessionComparison(
        session1=outcome1,
        session2=outcome2,
        comparison=compare_stats(outcome1, outcome2, include_files),
    )
