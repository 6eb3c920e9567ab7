"""Tool registry, response envelopes, and the HTTP router exposing them."""
from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable

from fastapi import APIRouter, Body
from pydantic import BaseModel

from session_search import config
from session_search.errors import MissingInputError, SessionSearchError
from session_search.models import TextContent, ToolDefinition, ToolResult
from session_search.observability import record_tool_call, start_span
from session_search.services import analytics, lookup, search, sessions

logger = logging.getLogger("session_search.tools")

ToolHandler = Callable[[dict[str, Any], Path], Awaitable[BaseModel]]


def success_response(data: BaseModel | dict[str, Any]) -> ToolResult:
    payload = data.model_dump(exclude_none=True) if isinstance(data, BaseModel) else data
    return ToolResult(content=[TextContent(text=json.dumps(payload, indent=2, ensure_ascii=False))])


def error_response(message: str) -> ToolResult:
    return ToolResult(
        content=[TextContent(text=json.dumps({"error": message}, ensure_ascii=False))],
        isError=True,
    )


# ── Argument coercion ──────────────────────────────────────────────

def _require_str(args: dict[str, Any], name: str) -> str:
    value = args.get(name)
    if not isinstance(value, str) or not value:
        raise MissingInputError(name)
    return value


def _optional_str(args: dict[str, Any], name: str) -> str | None:
    value = args.get(name)
    if isinstance(value, str) and value:
        return value
    return None


def _coerce_int(args: dict[str, Any], name: str, default: int) -> int:
    value = args.get(name)
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def _coerce_bool(args: dict[str, Any], name: str, default: bool = False) -> bool:
    value = args.get(name)
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return default


# ── Handlers ───────────────────────────────────────────────────────

async def _search_prompts(args: dict[str, Any], claude_home: Path) -> BaseModel:
    return await search.search_prompts(
        claude_home,
        _require_str(args, "query"),
        project=_optional_str(args, "project"),
        since=_optional_str(args, "since"),
        until=_optional_str(args, "until"),
        limit=_coerce_int(args, "limit", 50),
    )


async def _list_sessions(args: dict[str, Any], claude_home: Path) -> BaseModel:
    return await sessions.list_sessions(
        claude_home,
        project=_optional_str(args, "project"),
        since=_optional_str(args, "since"),
        until=_optional_str(args, "until"),
        sort_by=_optional_str(args, "sortBy") or "date",
        sort_order=_optional_str(args, "sortOrder") or "desc",
        limit=_coerce_int(args, "limit", 50),
        offset=_coerce_int(args, "offset", 0),
    )


async def _get_session(args: dict[str, Any], claude_home: Path) -> BaseModel:
    return await sessions.get_session(
        claude_home,
        _require_str(args, "sessionId"),
        fmt=_optional_str(args, "format") or "standard",
        include_tool_calls=_coerce_bool(args, "includeToolCalls"),
        limit=_coerce_int(args, "limit", 50),
        offset=_coerce_int(args, "offset", 0),
    )


async def _get_session_summary(args: dict[str, Any], claude_home: Path) -> BaseModel:
    return await sessions.get_session_summary(claude_home, _require_str(args, "sessionId"))


async def _search_session_content(args: dict[str, Any], claude_home: Path) -> BaseModel:
    return await search.search_session_content(
        claude_home,
        _require_str(args, "query"),
        project=_optional_str(args, "project"),
        role=_optional_str(args, "role") or "both",
        since=_optional_str(args, "since"),
        until=_optional_str(args, "until"),
        limit=_coerce_int(args, "limit", 20),
    )


async def _find_sessions_by_file(args: dict[str, Any], claude_home: Path) -> BaseModel:
    return await lookup.find_sessions_by_file(
        claude_home,
        _require_str(args, "filePath"),
        operation=_optional_str(args, "operation") or "all",
        project=_optional_str(args, "project"),
        limit=_coerce_int(args, "limit", 20),
    )


async def _find_sessions_by_branch(args: dict[str, Any], claude_home: Path) -> BaseModel:
    return await lookup.find_sessions_by_branch(
        claude_home,
        _require_str(args, "branch"),
        project=_optional_str(args, "project"),
        exact_match=_coerce_bool(args, "exactMatch"),
        limit=_coerce_int(args, "limit", 20),
    )


async def _get_agent_activity(args: dict[str, Any], claude_home: Path) -> BaseModel:
    return await analytics.get_agent_activity(
        claude_home,
        _require_str(args, "sessionId"),
        limit=_coerce_int(args, "limit", 20),
        offset=_coerce_int(args, "offset", 0),
    )


async def _get_tool_usage_stats(args: dict[str, Any], claude_home: Path) -> BaseModel:
    return await analytics.get_tool_usage_stats(
        claude_home,
        session_id=_optional_str(args, "sessionId"),
        project=_optional_str(args, "project"),
        since=_optional_str(args, "since"),
        until=_optional_str(args, "until"),
        limit=_coerce_int(args, "limit", 10),
    )


async def _get_session_timeline(args: dict[str, Any], claude_home: Path) -> BaseModel:
    return await analytics.get_session_timeline(
        claude_home,
        _require_str(args, "sessionId"),
        include_content=_coerce_bool(args, "includeContent"),
        fmt=_optional_str(args, "format") or "standard",
        limit=_coerce_int(args, "limit", 50),
        offset=_coerce_int(args, "offset", 0),
    )


async def _compare_sessions(args: dict[str, Any], claude_home: Path) -> BaseModel:
    session_id1 = _require_str(args, "sessionId1")
    session_id2 = _require_str(args, "sessionId2")
    return await analytics.compare_sessions(
        claude_home,
        session_id1,
        session_id2,
        include_files=_coerce_bool(args, "includeFiles"),
    )


# ── Definitions ────────────────────────────────────────────────────

def _schema(properties: dict[str, dict[str, Any]], required: list[str] | None = None) -> dict[str, Any]:
    schema: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


def _string(description: str, enum: list[str] | None = None) -> dict[str, Any]:
    prop: dict[str, Any] = {"type": "string", "description": description}
    if enum:
        prop["enum"] = enum
    return prop


def _number(description: str) -> dict[str, Any]:
    return {"type": "number", "description": description}


def _boolean(description: str) -> dict[str, Any]:
    return {"type": "boolean", "description": description}


_PROJECT = _string("Filter by project path (partial match)")
_SESSION_ID = _string("Session ID")


@dataclass(frozen=True)
class RegisteredTool:
    definition: ToolDefinition
    handler: ToolHandler


TOOL_REGISTRY: dict[str, RegisteredTool] = {
    tool.definition.name: tool
    for tool in (
        RegisteredTool(
            ToolDefinition(
                name="search_prompts",
                description="Fuzzy search across all user prompts in Claude Code session history",
                inputSchema=_schema(
                    {
                        "query": _string("Search term (case-insensitive match against prompt text)"),
                        "project": _PROJECT,
                        "since": _string("ISO date - only prompts after this date"),
                        "until": _string("ISO date - only prompts before this date"),
                        "limit": _number("Maximum number of results (default: 50)"),
                    },
                    ["query"],
                ),
            ),
            _search_prompts,
        ),
        RegisteredTool(
            ToolDefinition(
                name="list_sessions",
                description="Browse Claude Code sessions with filters",
                inputSchema=_schema(
                    {
                        "project": _PROJECT,
                        "since": _string("ISO date - only sessions started after this date"),
                        "until": _string("ISO date - only sessions started before this date"),
                        "sortBy": _string("Sort by date or size (default: date)", ["date", "size"]),
                        "sortOrder": _string("Sort order (default: desc)", ["asc", "desc"]),
                        "limit": _number("Maximum number of results (default: 50)"),
                        "offset": _number("Number of sessions to skip for pagination (default: 0)"),
                    }
                ),
            ),
            _list_sessions,
        ),
        RegisteredTool(
            ToolDefinition(
                name="get_session",
                description="Retrieve a Claude Code session transcript",
                inputSchema=_schema(
                    {
                        "sessionId": _SESSION_ID,
                        "format": _string(
                            "Output format: json/markdown (legacy), or full/standard/minimal (default: standard)",
                            list(sessions.SESSION_FORMATS),
                        ),
                        "includeToolCalls": _boolean("Keep tool-call messages in json/markdown output (default: false)"),
                        "limit": _number("Maximum number of messages to return (default: 50, max: 200)"),
                        "offset": _number("Number of messages to skip for pagination (default: 0)"),
                    },
                    ["sessionId"],
                ),
            ),
            _get_session,
        ),
        RegisteredTool(
            ToolDefinition(
                name="get_session_summary",
                description="Get or generate a summary for a Claude Code session",
                inputSchema=_schema({"sessionId": _SESSION_ID}, ["sessionId"]),
            ),
            _get_session_summary,
        ),
        RegisteredTool(
            ToolDefinition(
                name="search_session_content",
                description="Full-text search within all message content across sessions",
                inputSchema=_schema(
                    {
                        "query": _string("Search term (case-insensitive substring match)"),
                        "project": _PROJECT,
                        "role": _string("Filter by message role (default: both)", list(search.SEARCH_ROLES)),
                        "since": _string("ISO date - only messages after this date"),
                        "until": _string("ISO date - only messages before this date"),
                        "limit": _number("Maximum number of results (default: 20)"),
                    },
                    ["query"],
                ),
            ),
            _search_session_content,
        ),
        RegisteredTool(
            ToolDefinition(
                name="find_sessions_by_file",
                description="Find sessions that touched a specific file (Read, Write, Edit operations)",
                inputSchema=_schema(
                    {
                        "filePath": _string("File path or partial path to search for"),
                        "operation": _string("Filter by operation type (default: all)", list(lookup.FILE_OPERATIONS)),
                        "project": _PROJECT,
                        "limit": _number("Maximum number of sessions to return (default: 20)"),
                    },
                    ["filePath"],
                ),
            ),
            _find_sessions_by_file,
        ),
        RegisteredTool(
            ToolDefinition(
                name="find_sessions_by_branch",
                description="Find sessions that were active on a specific git branch",
                inputSchema=_schema(
                    {
                        "branch": _string("Git branch name or partial name to search for"),
                        "project": _PROJECT,
                        "exactMatch": _boolean("Require exact branch name match (default: false)"),
                        "limit": _number("Maximum number of sessions to return (default: 20)"),
                    },
                    ["branch"],
                ),
            ),
            _find_sessions_by_branch,
        ),
        RegisteredTool(
            ToolDefinition(
                name="get_agent_activity",
                description="Get all subagents spawned in a session, with their types and descriptions",
                inputSchema=_schema(
                    {
                        "sessionId": _SESSION_ID,
                        "limit": _number("Maximum number of agent spawns to return (default: 20, max: 100)"),
                        "offset": _number("Number of agent spawns to skip for pagination (default: 0)"),
                    },
                    ["sessionId"],
                ),
            ),
            _get_agent_activity,
        ),
        RegisteredTool(
            ToolDefinition(
                name="get_tool_usage_stats",
                description="Analyze tool usage patterns across sessions",
                inputSchema=_schema(
                    {
                        "sessionId": _string("Analyze a specific session (optional)"),
                        "project": _PROJECT,
                        "since": _string("ISO date - only sessions started after this date"),
                        "until": _string("ISO date - only sessions started before this date"),
                        "limit": _number("Maximum number of sessions to analyze (default: 10)"),
                    }
                ),
            ),
            _get_tool_usage_stats,
        ),
        RegisteredTool(
            ToolDefinition(
                name="get_session_timeline",
                description="Get a timeline of messages, tool calls, and agent spawns for a session",
                inputSchema=_schema(
                    {
                        "sessionId": _SESSION_ID,
                        "includeContent": _boolean("Include message content snippets (default: false)"),
                        "format": _string(
                            "full/standard list events, minimal returns counts only (default: standard)",
                            list(analytics.TIMELINE_FORMATS),
                        ),
                        "limit": _number("Maximum number of timeline events to return (default: 50, max: 200)"),
                        "offset": _number("Number of timeline events to skip for pagination (default: 0)"),
                    },
                    ["sessionId"],
                ),
            ),
            _get_session_timeline,
        ),
        RegisteredTool(
            ToolDefinition(
                name="compare_sessions",
                description="Compare two sessions side by side - duration, tools used, message counts",
                inputSchema=_schema(
                    {
                        "sessionId1": _string("First session ID to compare"),
                        "sessionId2": _string("Second session ID to compare"),
                        "includeFiles": _boolean("Include filesAccessed and sharedFiles (default: false)"),
                    },
                    ["sessionId1", "sessionId2"],
                ),
            ),
            _compare_sessions,
        ),
    )
}


def get_all_tool_definitions() -> list[ToolDefinition]:
    return [tool.definition for tool in TOOL_REGISTRY.values()]


async def call_tool(name: str, args: dict[str, Any] | None, claude_home: Path) -> ToolResult:
    """Dispatch one tool call; every failure becomes an error envelope."""
    tool = TOOL_REGISTRY.get(name)
    if tool is None:
        return error_response(f"Unknown tool: {name}")

    started = time.perf_counter()
    status = "success"
    with start_span(f"tool.{name}", {"tool.name": name}):
        try:
            result = success_response(await tool.handler(args or {}, claude_home))
        except SessionSearchError as exc:
            status = "error"
            logger.debug("Tool %s failed: %s", name, exc)
            result = error_response(str(exc))
        except Exception as exc:
            status = "error"
            logger.exception("Tool %s raised unexpectedly", name)
            result = error_response(str(exc) or "Unknown error")

    elapsed_ms = (time.perf_counter() - started) * 1000
    record_tool_call(name, status, elapsed_ms)
    logger.info("Tool %s finished (%s) in %.1fms", name, status, elapsed_ms)
    return result


# ── Tools router ───────────────────────────────────────────────────

tools_router = APIRouter(prefix="/api/tools", tags=["tools"])


@tools_router.get("", response_model=list[ToolDefinition])
async def list_tools():
    """Return every tool definition."""
    return get_all_tool_definitions()


@tools_router.post("/{tool_name}", response_model=ToolResult, response_model_exclude_none=True)
async def invoke_tool(tool_name: str, args: dict[str, Any] | None = Body(default=None)):
    """Run a tool with a JSON argument bag."""
    return await call_tool(tool_name, args, config.CLAUDE_HOME)
