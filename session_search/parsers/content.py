"""Normalize polymorphic message content into text, tool calls, and agent spawns.

Message content in a session log is either a bare string (older records) or an
ordered list of typed blocks. ``decode_content`` turns either shape into the
``PlainText`` / ``Blocks`` union below; every extractor handles both variants
and treats blocks it does not recognise as contributing nothing.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Union

AGENT_TOOL_NAME = "Task"
AGENT_PROMPT_MAX_CHARS = 200

_TOOL_MARKER = "[Tool"


@dataclass(frozen=True)
class TextBlock:
    text: str


@dataclass(frozen=True)
class ToolUseBlock:
    name: str
    input: dict[str, Any] = field(default_factory=dict)
    id: str | None = None


@dataclass(frozen=True)
class ToolResultBlock:
    content: Any = None
    tool_use_id: str | None = None


@dataclass(frozen=True)
class UnknownBlock:
    raw: Any = None


ContentBlock = Union[TextBlock, ToolUseBlock, ToolResultBlock, UnknownBlock]


@dataclass(frozen=True)
class PlainText:
    text: str


@dataclass(frozen=True)
class Blocks:
    blocks: tuple[ContentBlock, ...] = ()


Content = Union[PlainText, Blocks]


@dataclass(frozen=True)
class ToolCall:
    name: str
    input: dict[str, Any]


@dataclass(frozen=True)
class AgentSpawn:
    subagent_type: str
    description: str
    prompt: str | None = None


def _decode_block(item: Any) -> ContentBlock:
    if isinstance(item, str):
        return TextBlock(item)
    if not isinstance(item, dict):
        return UnknownBlock(item)

    block_type = item.get("type")
    if block_type == "text":
        text = item.get("text")
        if isinstance(text, str):
            return TextBlock(text)
    elif block_type == "tool_use":
        name = item.get("name")
        if isinstance(name, str) and name:
            raw_input = item.get("input")
            tool_id = item.get("id")
            return ToolUseBlock(
                name=name,
                input=raw_input if isinstance(raw_input, dict) else {},
                id=tool_id if isinstance(tool_id, str) else None,
            )
    elif block_type == "tool_result":
        tool_use_id = item.get("tool_use_id")
        return ToolResultBlock(
            content=item.get("content"),
            tool_use_id=tool_use_id if isinstance(tool_use_id, str) else None,
        )
    return UnknownBlock(item)


def decode_content(raw: Any) -> Content:
    """Decode ``message.content`` without ever raising."""
    if isinstance(raw, str):
        return PlainText(raw)
    if isinstance(raw, list):
        return Blocks(tuple(_decode_block(item) for item in raw))
    return Blocks()


def _block_text(block: ContentBlock, verbose: bool) -> str:
    if isinstance(block, TextBlock):
        return block.text
    if not verbose:
        return ""
    if isinstance(block, ToolUseBlock):
        return f"[Tool: {block.name}]"
    if isinstance(block, ToolResultBlock):
        return "[Tool Result]"
    return ""


def extract_text(
    content: Content | None,
    *,
    limit: int | None = None,
    separator: str = "\n",
    verbose: bool = False,
) -> str:
    """Flatten content to text.

    Bare strings pass through unchanged. For block lists only ``text`` blocks
    are kept, joined by ``separator``; ``verbose`` additionally renders
    ``[Tool: <name>]`` / ``[Tool Result]`` markers for the legacy formatter.
    """
    if content is None:
        return ""
    if isinstance(content, PlainText):
        text = content.text
    else:
        pieces = (_block_text(block, verbose) for block in content.blocks)
        text = separator.join(piece for piece in pieces if piece)
    if limit is not None and limit >= 0:
        return text[:limit]
    return text


def has_tool_marker(text: str) -> bool:
    """Legacy check for tool activity in verbose-flattened text."""
    return _TOOL_MARKER in text


def extract_tool_calls(content: Content | None, names: Iterable[str] | None = None) -> list[ToolCall]:
    """Return ``tool_use`` blocks in order, optionally restricted to ``names``."""
    if not isinstance(content, Blocks):
        return []
    allowed = set(names) if names is not None else None
    calls: list[ToolCall] = []
    for block in content.blocks:
        if not isinstance(block, ToolUseBlock):
            continue
        if allowed is not None and block.name not in allowed:
            continue
        calls.append(ToolCall(name=block.name, input=block.input))
    return calls


def agent_spawn_from_input(tool_input: dict[str, Any]) -> AgentSpawn:
    subagent_type = tool_input.get("subagent_type")
    description = tool_input.get("description")
    prompt = tool_input.get("prompt")
    return AgentSpawn(
        subagent_type=subagent_type if isinstance(subagent_type, str) and subagent_type else "unknown",
        description=description if isinstance(description, str) else "",
        prompt=prompt[:AGENT_PROMPT_MAX_CHARS] if isinstance(prompt, str) and prompt else None,
    )


def extract_agent_spawns(content: Content | None) -> list[AgentSpawn]:
    return [agent_spawn_from_input(call.input) for call in extract_tool_calls(content, [AGENT_TOOL_NAME])]


def tool_file_path(tool_input: dict[str, Any]) -> str:
    """File argument of a file tool call (``file_path``, then ``path``)."""
    for key in ("file_path", "path"):
        value = tool_input.get(key)
        if isinstance(value, str) and value:
            return value
    return ""
