"""Walk ``<claude_home>/projects/<encoded-project>/<session-id>.jsonl``."""
from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator

from session_search.errors import ProjectsDirUnreadableError, SessionNotFoundError

SESSION_SUFFIX = ".jsonl"
AGENT_SESSION_PREFIX = "agent-"
_MARKER = "-"


@dataclass(frozen=True)
class SessionFile:
    project: str
    path: Path
    session_id: str


def projects_dir(claude_home: Path) -> Path:
    return claude_home / "projects"


def encode_project_path(project_path: str) -> str:
    return project_path.replace("/", _MARKER)


def decode_project_dir(name: str) -> str:
    """Decode an encoded project directory name.

    The mapping is lossy: ``-repo`` and ``repo`` both decode to ``repo`` and a
    literal ``-`` inside a path segment comes back as ``/``.
    """
    if name.startswith(_MARKER):
        name = name[1:]
    return name.replace(_MARKER, "/")


def project_matches(project_path: str, project_filter: str | None) -> bool:
    if not project_filter:
        return True
    return project_filter.lower() in project_path.lower()


def is_session_filename(name: str) -> bool:
    return name.endswith(SESSION_SUFFIX) and not name.startswith(AGENT_SESSION_PREFIX)


def _list_project_dirs(root: Path) -> list[str]:
    try:
        return sorted(os.listdir(root))
    except OSError as exc:
        raise ProjectsDirUnreadableError() from exc


def _list_session_files(project_dir: Path) -> list[str]:
    try:
        return sorted(name for name in os.listdir(project_dir) if is_session_filename(name))
    except OSError:
        return []


async def iter_session_files(claude_home: Path, project: str | None = None) -> AsyncIterator[SessionFile]:
    """Yield top-level session files, optionally filtered by project substring.

    Raises ProjectsDirUnreadableError when the projects root cannot be listed;
    an unreadable project directory simply yields nothing.
    """
    root = projects_dir(claude_home)
    for project_dir in await asyncio.to_thread(_list_project_dirs, root):
        project_path = decode_project_dir(project_dir)
        if not project_matches(project_path, project):
            continue
        session_dir = root / project_dir
        for name in await asyncio.to_thread(_list_session_files, session_dir):
            yield SessionFile(
                project=project_path,
                path=session_dir / name,
                session_id=name[: -len(SESSION_SUFFIX)],
            )


def _find_session_file(claude_home: Path, session_id: str) -> SessionFile | None:
    # Identifiers are file stems; anything path-like can never match.
    if not session_id or Path(session_id).name != session_id or os.sep in session_id:
        return None
    root = projects_dir(claude_home)
    for project_dir in _list_project_dirs(root):
        candidate = root / project_dir / f"{session_id}{SESSION_SUFFIX}"
        if candidate.is_file():
            return SessionFile(
                project=decode_project_dir(project_dir),
                path=candidate,
                session_id=session_id,
            )
    return None


async def locate_session(claude_home: Path, session_id: str) -> SessionFile:
    """Find a session by id, scanning project directories in order."""
    found = await asyncio.to_thread(_find_session_file, claude_home, session_id)
    if found is None:
        raise SessionNotFoundError(session_id)
    return found
