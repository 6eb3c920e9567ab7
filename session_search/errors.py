"""Query-level failures surfaced to callers as error envelopes."""
from __future__ import annotations


class SessionSearchError(Exception):
    """Base class for failures that abort a whole query."""


class MissingInputError(SessionSearchError):
    def __init__(self, field: str) -> None:
        super().__init__(f"{field} parameter is required and must be a string")
        self.field = field


class SessionNotFoundError(SessionSearchError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session {session_id} not found")
        self.session_id = session_id


class InvalidSessionError(SessionSearchError):
    def __init__(self, message: str = "Invalid session file: no timestamps found") -> None:
        super().__init__(message)


class ProjectsDirUnreadableError(SessionSearchError):
    def __init__(self) -> None:
        super().__init__("Could not read Claude projects directory")


class HistoryUnreadableError(SessionSearchError):
    def __init__(self, reason: str) -> None:
        super().__init__(f"Failed to read history file: {reason}")
