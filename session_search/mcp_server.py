"""FastMCP stdio server exposing the session search tools.

Usage:
    # Development
    fastmcp dev session_search/mcp_server.py

    # Production (stdio)
    python -m session_search.mcp_server
"""
from __future__ import annotations

import logging
from typing import Any, Literal

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError

from session_search import config
from session_search.routers.tools import call_tool

# stdout carries the protocol; logs go to stderr.
logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("session_search.mcp")

mcp = FastMCP(config.SERVER_NAME)


async def _dispatch(name: str, **arguments: Any) -> str:
    args = {key: value for key, value in arguments.items() if value is not None}
    result = await call_tool(name, args, config.CLAUDE_HOME)
    text = result.content[0].text if result.content else ""
    if result.isError:
        raise ToolError(text)
    return text


@mcp.tool()
async def search_prompts(
    query: str,
    project: str | None = None,
    since: str | None = None,
    until: str | None = None,
    limit: int = 50,
) -> str:
    """Fuzzy search across all user prompts in Claude Code session history.

    Args:
        query: Search term (case-insensitive match against prompt text)
        project: Filter by project path (partial match)
        since: ISO date - only prompts after this date
        until: ISO date - only prompts before this date
        limit: Maximum number of results (default: 50)
    """
    return await _dispatch("search_prompts", query=query, project=project, since=since, until=until, limit=limit)


@mcp.tool()
async def list_sessions(
    project: str | None = None,
    since: str | None = None,
    until: str | None = None,
    sortBy: Literal["date", "size"] = "date",
    sortOrder: Literal["asc", "desc"] = "desc",
    limit: int = 50,
    offset: int = 0,
) -> str:
    """Browse Claude Code sessions with filters."""
    return await _dispatch(
        "list_sessions",
        project=project,
        since=since,
        until=until,
        sortBy=sortBy,
        sortOrder=sortOrder,
        limit=limit,
        offset=offset,
    )


@mcp.tool()
async def get_session(
    sessionId: str,
    format: Literal["markdown", "json", "full", "standard", "minimal"] = "standard",
    includeToolCalls: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> str:
    """Retrieve a Claude Code session transcript.

    Args:
        sessionId: Session ID
        format: json/markdown (legacy) or full/standard/minimal
        includeToolCalls: Keep tool-call messages in json/markdown output
        limit: Maximum number of messages to return (max 200)
        offset: Number of messages to skip
    """
    return await _dispatch(
        "get_session",
        sessionId=sessionId,
        format=format,
        includeToolCalls=includeToolCalls,
        limit=limit,
        offset=offset,
    )


@mcp.tool()
async def get_session_summary(sessionId: str) -> str:
    """Get or generate a summary for a Claude Code session."""
    return await _dispatch("get_session_summary", sessionId=sessionId)


@mcp.tool()
async def search_session_content(
    query: str,
    project: str | None = None,
    role: Literal["user", "assistant", "both"] = "both",
    since: str | None = None,
    until: str | None = None,
    limit: int = 20,
) -> str:
    """Full-text search within all message content across sessions."""
    return await _dispatch(
        "search_session_content",
        query=query,
        project=project,
        role=role,
        since=since,
        until=until,
        limit=limit,
    )


@mcp.tool()
async def find_sessions_by_file(
    filePath: str,
    operation: Literal["Read", "Write", "Edit", "all"] = "all",
    project: str | None = None,
    limit: int = 20,
) -> str:
    """Find sessions that touched a specific file (Read, Write, Edit operations)."""
    return await _dispatch(
        "find_sessions_by_file",
        filePath=filePath,
        operation=operation,
        project=project,
        limit=limit,
    )


@mcp.tool()
async def find_sessions_by_branch(
    branch: str,
    project: str | None = None,
    exactMatch: bool = False,
    limit: int = 20,
) -> str:
    """Find sessions that were active on a specific git branch."""
    return await _dispatch(
        "find_sessions_by_branch",
        branch=branch,
        project=project,
        exactMatch=exactMatch,
        limit=limit,
    )


@mcp.tool()
async def get_agent_activity(sessionId: str, limit: int = 20, offset: int = 0) -> str:
    """Get all subagents spawned in a session, with their types and descriptions."""
    return await _dispatch("get_agent_activity", sessionId=sessionId, limit=limit, offset=offset)


@mcp.tool()
async def get_tool_usage_stats(
    sessionId: str | None = None,
    project: str | None = None,
    since: str | None = None,
    until: str | None = None,
    limit: int = 10,
) -> str:
    """Analyze tool usage patterns across sessions."""
    return await _dispatch(
        "get_tool_usage_stats",
        sessionId=sessionId,
        project=project,
        since=since,
        until=until,
        limit=limit,
    )


@mcp.tool()
async def get_session_timeline(
    sessionId: str,
    includeContent: bool = False,
    format: Literal["full", "standard", "minimal"] = "standard",
    limit: int = 50,
    offset: int = 0,
) -> str:
    """Get a timeline of messages, tool calls, and agent spawns for a session."""
    return await _dispatch(
        "get_session_timeline",
        sessionId=sessionId,
        includeContent=includeContent,
        format=format,
        limit=limit,
        offset=offset,
    )


@mcp.tool()
async def compare_sessions(sessionId1: str, sessionId2: str, includeFiles: bool = False) -> str:
    """Compare two sessions side by side - duration, tools used, message counts."""
    return await _dispatch(
        "compare_sessions",
        sessionId1=sessionId1,
        sessionId2=sessionId2,
        includeFiles=includeFiles,
    )


def main() -> None:
    logger.info("%s %s serving %s over stdio", config.SERVER_NAME, config.SERVER_VERSION, config.CLAUDE_HOME)
    mcp.run()


if __name__ == "__main__":
    main()
