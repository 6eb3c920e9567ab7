import json
import tempfile
import unittest
from collections import Counter
from pathlib import Path

from session_search.errors import InvalidSessionError, SessionNotFoundError
from session_search.services.analytics import (
    build_tool_usage_stats,
    categorize_tools,
    compare_sessions,
    get_agent_activity,
    get_session_timeline,
    get_tool_usage_stats,
)


def _user(timestamp: str, content) -> dict:
    return {"type": "user", "timestamp": timestamp, "message": {"role": "user", "content": content}}


def _assistant(timestamp: str, *blocks: dict) -> dict:
    return {"type": "assistant", "timestamp": timestamp, "message": {"role": "assistant", "content": list(blocks)}}


def _tool(name: str, **tool_input) -> dict:
    return {"type": "tool_use", "name": name, "input": tool_input}


def _text(text: str) -> dict:
    return {"type": "text", "text": text}


class AnalyticsServiceTests(unittest.IsolatedAsyncioTestCase):
    def _make_home(self) -> Path:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        return Path(tmpdir.name)

    def _write_session(self, home: Path, project_dir: str, session_id: str, records: list[dict]) -> Path:
        path = home / "projects" / project_dir / f"{session_id}.jsonl"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("\n".join(json.dumps(record) for record in records), encoding="utf-8")
        return path

    # ── Tool usage ──

    def test_usage_stats_percentages_and_categories(self) -> None:
        stats = build_tool_usage_stats(Counter({"Read": 2, "Bash": 1, "mcp__github__search": 0}), 3)
        self.assertEqual(stats.totalToolCalls, 3)
        self.assertEqual(stats.sessionsAnalyzed, 3)
        self.assertEqual(stats.topTools[0].name, "Read")
        self.assertEqual(stats.topTools[0].percentage, "66.7%")
        self.assertEqual(stats.topTools[1].percentage, "33.3%")

        empty = build_tool_usage_stats(Counter(), 0)
        self.assertEqual((empty.totalToolCalls, empty.topTools, empty.toolsByCategory), (0, [], {}))

    def test_categorize_tools(self) -> None:
        categories = categorize_tools(["Read", "Bash", "WebFetch", "mcp__linear__list", "TodoWrite"])
        self.assertEqual(categories["File Operations"], ["Read"])
        self.assertEqual(categories["Execution"], ["Bash"])
        self.assertEqual(categories["Web"], ["WebFetch"])
        self.assertEqual(categories["Planning"], ["TodoWrite"])
        self.assertEqual(categories["MCP & Other"], ["mcp__linear__list"])
        self.assertNotIn("User Interaction", categories)

    async def test_usage_stats_across_recent_sessions(self) -> None:
        home = self._make_home()
        self._write_session(home, "-repo", "old", [
            _assistant("2025-01-01T10:00:00Z", _tool("Write", file_path="/x")),
        ])
        self._write_session(home, "-repo", "mid", [
            _assistant("2025-01-02T10:00:00Z", _tool("Read", file_path="/x"), _tool("Read", file_path="/y")),
        ])
        self._write_session(home, "-repo", "new", [
            _assistant("2025-01-03T10:00:00Z", _tool("Bash", command="ls")),
        ])
        self._write_session(home, "-repo", "chatty", [
            _user("2025-01-04T10:00:00Z", "no tools here"),
        ])

        recent = await get_tool_usage_stats(home, limit=2)
        self.assertEqual(recent.sessionsAnalyzed, 2)
        self.assertEqual({u.name: u.count for u in recent.toolUsage}, {"Read": 2, "Bash": 1})

        windowed = await get_tool_usage_stats(home, until="2025-01-01T23:59:59Z")
        self.assertEqual({u.name: u.count for u in windowed.toolUsage}, {"Write": 1})

        single = await get_tool_usage_stats(home, session_id="mid", since="2030-01-01")
        self.assertEqual(single.sessionsAnalyzed, 1)
        self.assertEqual(single.totalToolCalls, 2)

        with self.assertRaises(SessionNotFoundError):
            await get_tool_usage_stats(home, session_id="ghost")

    # ── Timeline ──

    async def test_timeline_events_and_counts(self) -> None:
        home = self._make_home()
        self._write_session(home, "-repo", "s1", [
            _user("2025-01-01T10:00:00Z", "please fix the tests"),
            _assistant(
                "2025-01-01T10:00:10Z",
                _text("On it."),
                _tool("Read", file_path="/repo/tests/test_app.py"),
                _tool("Bash", command="pytest -x " + "-k thing " * 10),
                _tool("Task", subagent_type="Explore", description="find fixtures", prompt="look"),
            ),
            {"type": "summary", "summary": "Fixing the test suite"},
            _assistant("2025-01-01T10:02:10Z", _tool("Grep", pattern="fixture")),
        ])

        timeline = await get_session_timeline(home, "s1", include_content=True)
        self.assertEqual(
            [event.type for event in timeline.data],
            [
                "user_message",
                "assistant_message",
                "tool_call",
                "tool_call",
                "agent_spawn",
                "summary_update",
                "tool_call",
            ],
        )
        details = [event.details for event in timeline.data]
        self.assertEqual(details[0], "User message (20 chars)")
        self.assertEqual(details[2], "Read: test_app.py")
        self.assertEqual(details[3], "Bash: " + ("pytest -x " + "-k thing " * 10)[:50])
        self.assertEqual(details[4], "Spawned Explore: find fixtures")
        self.assertEqual(details[5], "Summary updated: Fixing the test suite")
        self.assertEqual(details[6], "Grep")
        self.assertEqual(timeline.data[0].content, "please fix the tests")
        self.assertEqual(timeline.duration, "2m 10s")
        self.assertEqual(timeline.toolCallCount, 3)
        self.assertEqual(timeline.agentSpawnCount, 1)
        self.assertEqual(timeline.messageCount.user, 1)
        self.assertEqual(timeline.messageCount.assistant, 2)
        self.assertEqual(timeline.eventCount, 7)

        paged = await get_session_timeline(home, "s1", limit=2, offset=1)
        self.assertEqual([event.type for event in paged.data], ["assistant_message", "tool_call"])
        self.assertTrue(paged.hasMore)
        self.assertIsNone(paged.data[0].content)

        minimal = await get_session_timeline(home, "s1", fmt="minimal")
        self.assertEqual(minimal.data, {
            "user_message": 1,
            "assistant_message": 1,
            "tool_call": 3,
            "agent_spawn": 1,
            "summary_update": 1,
        })
        self.assertFalse(minimal.hasMore)

    async def test_timeline_keeps_bare_strings_whole_and_clips_blocks(self) -> None:
        home = self._make_home()
        self._write_session(home, "-repo", "s1", [
            _user("2025-01-01T10:00:00Z", "a" * 300),
            _assistant("2025-01-01T10:00:05Z", _text("b" * 120), _text("c" * 120)),
        ])

        timeline = await get_session_timeline(home, "s1", include_content=True)
        self.assertEqual(timeline.data[0].details, "User message (300 chars)")
        self.assertEqual(timeline.data[0].content, "a" * 300)
        self.assertEqual(timeline.data[1].details, "Assistant response (150 chars)")
        self.assertEqual(timeline.data[1].content, "b" * 120 + " " + "c" * 29)

    # ── Agent activity ──

    async def test_agent_activity_lists_spawns(self) -> None:
        home = self._make_home()
        self._write_session(home, "-repo", "s1", [
            _user("2025-01-01T10:00:00Z", "investigate"),
            _assistant(
                "2025-01-01T10:00:05Z",
                _tool("Task", subagent_type="Explore", description="map modules"),
                _tool("Task", subagent_type="Plan", description="draft plan", prompt="q" * 250),
            ),
            _assistant("2025-01-01T10:01:00Z", _tool("Task", subagent_type="Explore", description="check tests")),
        ])

        activity = await get_agent_activity(home, "s1", limit=2)
        self.assertEqual(activity.total, 3)
        self.assertTrue(activity.hasMore)
        self.assertEqual([spawn.description for spawn in activity.data], ["map modules", "draft plan"])
        self.assertEqual(len(activity.data[1].prompt or ""), 200)
        self.assertEqual(activity.uniqueAgentTypes, ["Explore", "Plan"])
        self.assertEqual(activity.agentTypeCounts, {"Explore": 2, "Plan": 1})

    # ── Comparison ──

    async def test_compare_sessions_tool_sets(self) -> None:
        home = self._make_home()
        self._write_session(home, "-repo", "one", [
            _user("2025-01-01T10:00:00Z", "start"),
            _assistant("2025-01-01T10:05:00Z", _tool("Read", file_path="/repo/a.py"), _tool("Edit", file_path="/repo/a.py")),
        ])
        self._write_session(home, "-repo", "two", [
            _user("2025-01-02T10:00:00Z", "start"),
            _assistant("2025-01-02T10:01:00Z", _tool("Read", file_path="/repo/a.py"), _tool("Bash", command="make")),
            _user("2025-01-02T10:01:30Z", "thanks"),
        ])

        result = await compare_sessions(home, "one", "two", include_files=True)
        comparison = result.comparison
        self.assertEqual(comparison.sharedTools, ["Read"])
        self.assertEqual(comparison.uniqueToSession1, ["Edit"])
        self.assertEqual(comparison.uniqueToSession2, ["Bash"])
        self.assertEqual(comparison.longerSession, "one")
        self.assertEqual(comparison.durationDifference, "3m 30s")
        self.assertEqual(comparison.moreMessages, "two")
        self.assertEqual(comparison.messageDifference, 1)
        self.assertEqual(comparison.sharedFiles, ["/repo/a.py"])
        self.assertEqual(result.session1.filesAccessed, ["/repo/a.py"])
        self.assertEqual(result.session2.durationFormatted, "1m 30s")

        without_files = await compare_sessions(home, "one", "two")
        self.assertIsNone(without_files.session1.filesAccessed)
        self.assertEqual(without_files.comparison.sharedFiles, [])

    async def test_compare_sessions_reports_first_failure(self) -> None:
        home = self._make_home()
        self._write_session(home, "-repo", "ok", [_user("2025-01-01T10:00:00Z", "x")])
        self._write_session(home, "-repo", "bad", [{"type": "file-history-snapshot"}])

        with self.assertRaises(SessionNotFoundError) as ctx:
            await compare_sessions(home, "missing", "bad")
        self.assertEqual(ctx.exception.session_id, "missing")

        with self.assertRaises(InvalidSessionError):
            await compare_sessions(home, "ok", "bad")


if __name__ == "__main__":
    unittest.main()
