import json
import tempfile
import unittest
from pathlib import Path

from session_search.errors import InvalidSessionError, SessionNotFoundError
from session_search.services.sessions import get_session, get_session_summary, list_sessions


def _user(timestamp: str, content, **extra) -> dict:
    return {"type": "user", "timestamp": timestamp, "message": {"role": "user", "content": content}, **extra}


def _assistant(timestamp: str, content, **extra) -> dict:
    return {"type": "assistant", "timestamp": timestamp, "message": {"role": "assistant", "content": content}, **extra}


class SessionsServiceTests(unittest.IsolatedAsyncioTestCase):
    def _make_home(self) -> Path:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        return Path(tmpdir.name)

    def _write_session(self, home: Path, project_dir: str, session_id: str, records: list[dict]) -> Path:
        path = home / "projects" / project_dir / f"{session_id}.jsonl"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("\n".join(json.dumps(record) for record in records), encoding="utf-8")
        return path

    def _seed_three_sessions(self, home: Path) -> None:
        self._write_session(home, "-work-api", "early", [
            {"type": "summary", "summary": "Set up CI"},
            _user("2025-01-01T08:00:00Z", "configure ci", gitBranch="main"),
            _assistant("2025-01-01T08:10:00Z", "done"),
        ])
        self._write_session(home, "-work-api", "middle", [
            _user("2025-01-02T08:00:00Z", "x" * 500),
        ])
        self._write_session(home, "-home-web", "late", [
            _user("2025-01-03T08:00:00Z", "style the page"),
        ])
        self._write_session(home, "-home-web", "broken", [
            {"type": "file-history-snapshot", "snapshot": {}},
        ])

    async def test_list_sessions_newest_first_skipping_invalid(self) -> None:
        home = self._make_home()
        self._seed_three_sessions(home)

        response = await list_sessions(home)
        self.assertEqual([s.sessionId for s in response.sessions], ["late", "middle", "early"])
        self.assertEqual(response.total, 3)
        self.assertFalse(response.hasMore)

        early = response.sessions[-1]
        self.assertEqual(early.project, "work/api")
        self.assertEqual(early.summary, "Set up CI")
        self.assertEqual(early.gitBranch, "main")
        self.assertEqual(early.messageCount, 2)
        self.assertEqual(early.lastActivityAt, "2025-01-01T08:10:00Z")
        self.assertGreater(early.sizeBytes, 0)

    async def test_list_sessions_sort_filter_and_page(self) -> None:
        home = self._make_home()
        self._seed_three_sessions(home)

        ascending = await list_sessions(home, sort_order="asc", limit=2)
        self.assertEqual([s.sessionId for s in ascending.sessions], ["early", "middle"])
        self.assertTrue(ascending.hasMore)

        by_size = await list_sessions(home, sort_by="size")
        self.assertEqual(by_size.sessions[0].sessionId, "middle")

        scoped = await list_sessions(home, project="WEB")
        self.assertEqual([s.sessionId for s in scoped.sessions], ["late"])

        windowed = await list_sessions(home, since="2025-01-02", until="2025-01-02T23:59:59Z")
        self.assertEqual([s.sessionId for s in windowed.sessions], ["middle"])

        second_page = await list_sessions(home, limit=1, offset=1)
        self.assertEqual([s.sessionId for s in second_page.sessions], ["middle"])
        self.assertEqual(second_page.total, 3)
        self.assertTrue(second_page.hasMore)

    async def test_get_session_standard_and_minimal_formats(self) -> None:
        home = self._make_home()
        self._write_session(home, "-repo", "s1", [
            _user("2025-01-01T10:00:00Z", "read the readme"),
            _assistant("2025-01-01T10:00:05Z", [
                {"type": "text", "text": "Reading it now."},
                {"type": "tool_use", "id": "t1", "name": "Read", "input": {"file_path": "/repo/README.md"}},
            ]),
            _user("2025-01-01T10:00:06Z", [{"type": "tool_result", "tool_use_id": "t1", "content": "# Readme"}]),
        ])

        detail = await get_session(home, "s1")
        self.assertEqual(detail.project, "repo")
        self.assertEqual(detail.total, 3)
        self.assertEqual(detail.data[0], {"role": "user", "timestamp": "2025-01-01T10:00:00Z", "text": "read the readme"})
        self.assertEqual(detail.data[1]["toolCalls"], ["Read"])
        self.assertEqual(detail.data[1]["text"], "Reading it now.")
        self.assertEqual(detail.data[2], {"role": "user", "timestamp": "2025-01-01T10:00:06Z"})

        minimal = await get_session(home, "s1", fmt="minimal")
        self.assertEqual(minimal.data[0]["contentLength"], len("read the readme"))

        full = await get_session(home, "s1", fmt="full", limit=1, offset=2)
        self.assertEqual(len(full.data), 1)
        self.assertEqual(full.data[0]["content"][0]["type"], "tool_result")
        self.assertFalse(full.hasMore)

    async def test_get_session_legacy_formats_hide_tool_messages(self) -> None:
        home = self._make_home()
        self._write_session(home, "-repo", "s1", [
            {"type": "summary", "summary": "Docs pass"},
            _user("2025-01-01T10:00:00Z", "update docs", gitBranch="docs"),
            _assistant("2025-01-01T10:00:05Z", [{"type": "tool_use", "name": "Edit", "input": {}}]),
            _assistant("2025-01-01T10:00:09Z", "All updated."),
        ])

        as_json = await get_session(home, "s1", fmt="json")
        self.assertEqual([m["content"] for m in as_json.data], ["update docs", "All updated."])

        with_tools = await get_session(home, "s1", fmt="json", include_tool_calls=True)
        self.assertEqual(with_tools.data[1]["content"], "[Tool: Edit]")

        markdown = await get_session(home, "s1", fmt="markdown")
        self.assertIsInstance(markdown.data, str)
        self.assertTrue(markdown.data.startswith("# Session: s1\n**Project:** repo\n**Summary:** Docs pass"))
        self.assertIn("**Branch:** docs", markdown.data)
        self.assertIn("## User (2025-01-01T10:00:00Z)\nupdate docs", markdown.data)
        self.assertNotIn("[Tool: Edit]", markdown.data)

    async def test_get_session_snapshot_only_is_invalid(self) -> None:
        home = self._make_home()
        self._write_session(home, "-repo", "snap", [
            {"type": "file-history-snapshot", "messageId": "m1", "snapshot": {"trackedFileBackups": {}}},
        ])
        with self.assertRaises(InvalidSessionError):
            await get_session(home, "snap")

    async def test_get_session_unknown_id(self) -> None:
        home = self._make_home()
        self._write_session(home, "-repo", "s1", [_user("2025-01-01T10:00:00Z", "hi")])
        with self.assertRaises(SessionNotFoundError):
            await get_session(home, "nope")

    async def test_summary_prefers_recorded_then_first_user_text(self) -> None:
        home = self._make_home()
        self._write_session(home, "-repo", "recorded", [
            {"type": "summary", "summary": "Refactor parser"},
            _user("2025-01-01T10:00:00Z", "go"),
        ])
        self._write_session(home, "-repo", "synth", [
            _user("2025-01-01T10:00:00Z", [{"type": "tool_result", "content": "noise"}]),
            _user("2025-01-01T10:00:01Z", "p" * 250),
        ])
        self._write_session(home, "-repo", "empty", [
            _assistant("2025-01-01T10:00:00Z", "hello"),
        ])

        recorded = await get_session_summary(home, "recorded")
        self.assertEqual((recorded.summary, recorded.summarySource), ("Refactor parser", "recorded"))

        synth = await get_session_summary(home, "synth")
        self.assertEqual(synth.summary, "p" * 200)
        self.assertEqual(synth.summarySource, "first_user_message")
        self.assertEqual(synth.messageCount, 2)

        empty = await get_session_summary(home, "empty")
        self.assertEqual((empty.summary, empty.summarySource), ("No summary available", "none"))

    async def test_repeated_reads_are_identical(self) -> None:
        home = self._make_home()
        self._seed_three_sessions(home)
        first = await list_sessions(home)
        second = await list_sessions(home)
        self.assertEqual(first.model_dump_json(), second.model_dump_json())


if __name__ == "__main__":
    unittest.main()
