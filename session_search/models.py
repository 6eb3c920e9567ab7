"""Pydantic models for tool definitions and query responses."""
from __future__ import annotations

from typing import Any, Optional, Union

from pydantic import BaseModel, Field


# ── Tool protocol models ───────────────────────────────────────────

class ToolDefinition(BaseModel):
    name: str
    description: str
    inputSchema: dict[str, Any]


class TextContent(BaseModel):
    type: str = "text"
    text: str


class ToolResult(BaseModel):
    content: list[TextContent]
    isError: Optional[bool] = None


# ── Prompt search ──────────────────────────────────────────────────

class PromptSearchResult(BaseModel):
    prompt: str
    timestamp: str
    project: str


class PromptSearchResponse(BaseModel):
    results: list[PromptSearchResult] = Field(default_factory=list)
    total: int = 0


# ── Session views ──────────────────────────────────────────────────

class SessionInfo(BaseModel):
    sessionId: str
    project: str
    summary: Optional[str] = None
    messageCount: int = 0
    startedAt: str
    lastActivityAt: str
    sizeBytes: int = 0
    gitBranch: Optional[str] = None


class SessionListResponse(BaseModel):
    sessions: list[SessionInfo] = Field(default_factory=list)
    total: int = 0
    hasMore: bool = False


class SessionMessageOutput(BaseModel):
    role: str
    content: str
    timestamp: str


class FullMessageOutput(BaseModel):
    role: str
    timestamp: str
    content: Any = None


class StandardMessageOutput(BaseModel):
    role: str
    timestamp: str
    text: Optional[str] = None
    toolCalls: Optional[list[str]] = None


class MinimalMessageOutput(BaseModel):
    role: str
    timestamp: str
    contentLength: int = 0
    toolCalls: Optional[list[str]] = None


class SessionDetail(BaseModel):
    sessionId: str
    project: str
    summary: Optional[str] = None
    gitBranch: Optional[str] = None
    startedAt: str
    lastActivityAt: str
    data: Union[str, list[Any]]
    total: int = 0
    hasMore: bool = False


class SessionSummary(BaseModel):
    sessionId: str
    summary: str
    summarySource: str = "recorded"  # "recorded" | "first_user_message" | "none"
    project: str
    gitBranch: Optional[str] = None
    messageCount: int = 0
    startedAt: str
    lastActivityAt: str


# ── Content / file / branch lookups ────────────────────────────────

class ContentSearchResult(BaseModel):
    sessionId: str
    project: str
    role: str
    content: str
    timestamp: str
    matchContext: str


class ContentSearchResponse(BaseModel):
    results: list[ContentSearchResult] = Field(default_factory=list)
    total: int = 0
    query: str


class FileAccessResult(BaseModel):
    sessionId: str
    project: str
    summary: Optional[str] = None
    filePath: str
    operation: str
    timestamp: str
    gitBranch: Optional[str] = None


class FileSearchResponse(BaseModel):
    results: list[FileAccessResult] = Field(default_factory=list)
    total: int = 0
    searchedFile: str


class BranchSessionResult(BaseModel):
    sessionId: str
    project: str
    summary: Optional[str] = None
    gitBranch: str
    messageCount: int = 0
    startedAt: str
    lastActivityAt: str
    sizeBytes: int = 0


class BranchSearchResponse(BaseModel):
    results: list[BranchSessionResult] = Field(default_factory=list)
    total: int = 0
    searchedBranch: str
    exactMatch: bool = False


# ── Analytics ──────────────────────────────────────────────────────

class ToolUsage(BaseModel):
    name: str
    count: int = 0


class TopTool(BaseModel):
    name: str
    count: int = 0
    percentage: str = "0%"


class ToolUsageStats(BaseModel):
    totalToolCalls: int = 0
    uniqueTools: int = 0
    sessionsAnalyzed: int = 0
    toolUsage: list[ToolUsage] = Field(default_factory=list)
    topTools: list[TopTool] = Field(default_factory=list)
    toolsByCategory: dict[str, list[str]] = Field(default_factory=dict)


class TimelineEvent(BaseModel):
    timestamp: str
    type: str  # "user_message" | "assistant_message" | "tool_call" | "agent_spawn" | "summary_update"
    details: str
    content: Optional[str] = None


class TimelineMessageCount(BaseModel):
    user: int = 0
    assistant: int = 0


class SessionTimeline(BaseModel):
    sessionId: str
    project: str
    summary: Optional[str] = None
    gitBranch: Optional[str] = None
    duration: str
    startedAt: str
    endedAt: str
    eventCount: int = 0
    messageCount: TimelineMessageCount = Field(default_factory=TimelineMessageCount)
    toolCallCount: int = 0
    agentSpawnCount: int = 0
    data: Union[list[TimelineEvent], dict[str, int]]
    total: int = 0
    hasMore: bool = False


class AgentSpawnInfo(BaseModel):
    subagentType: str
    description: str = ""
    timestamp: str
    prompt: Optional[str] = None


class AgentActivity(BaseModel):
    sessionId: str
    project: str
    summary: Optional[str] = None
    data: list[AgentSpawnInfo] = Field(default_factory=list)
    total: int = 0
    hasMore: bool = False
    uniqueAgentTypes: list[str] = Field(default_factory=list)
    agentTypeCounts: dict[str, int] = Field(default_factory=dict)


class MessageCount(BaseModel):
    user: int = 0
    assistant: int = 0
    total: int = 0


class AgentSpawnSummary(BaseModel):
    type: str
    description: str = ""


class SessionStats(BaseModel):
    sessionId: str
    project: str
    summary: Optional[str] = None
    gitBranch: Optional[str] = None
    startedAt: str
    endedAt: str
    durationMs: int = 0
    durationFormatted: str = "0s"
    messageCount: MessageCount = Field(default_factory=MessageCount)
    toolsUsed: dict[str, int] = Field(default_factory=dict)
    uniqueToolCount: int = 0
    totalToolCalls: int = 0
    agentSpawns: list[AgentSpawnSummary] = Field(default_factory=list)
    filesAccessed: Optional[list[str]] = None


class ComparisonSummary(BaseModel):
    longerSession: str
    durationDifference: str
    moreMessages: str
    messageDifference: int = 0
    moreToolCalls: str
    toolCallDifference: int = 0
    sharedTools: list[str] = Field(default_factory=list)
    uniqueToSession1: list[str] = Field(default_factory=list)
    uniqueToSession2: list[str] = Field(default_factory=list)
    sharedFiles: list[str] = Field(default_factory=list)


class SessionComparison(BaseModel):
    session1: SessionStats
    session2: SessionStats
    comparison: ComparisonSummary
