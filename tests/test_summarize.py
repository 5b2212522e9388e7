"""Tests for session-log line summaries."""

from unittest.mock import patch

from design_studio.core import summarize as summarize_mod
from design_studio.core.summarize import (
    AssistantLine,
    UnrecognizedLine,
    UserLine,
    decode_line,
    ellipsize,
    parse_timestamp,
    summarize_line,
)


def _assistant(*blocks):
    return {"type": "assistant", "message": {"content": list(blocks)}}


class TestUserLines:
    def test_collapses_whitespace(self):
        entry = summarize_line({"type": "user", "message": {"content": "  hello   world  "}})
        assert entry.kind == "user"
        assert entry.summary == "hello world"

    def test_strips_tags(self):
        entry = summarize_line(
            {"type": "user", "message": {"content": "<command-name>/clear</command-name> go"}}
        )
        assert entry.summary == "/clear go"

    def test_only_tags_is_skipped(self):
        assert summarize_line({"type": "user", "message": {"content": "<br/>  <x>"}}) is None

    def test_non_string_content_is_skipped(self):
        # Tool results come back as user lines with a list of blocks
        line = {"type": "user", "message": {"content": [{"type": "tool_result"}]}}
        assert summarize_line(line) is None


class TestAssistantLines:
    def test_edit_uses_basename(self):
        entry = summarize_line(
            _assistant({"type": "tool_use", "name": "Edit", "input": {"file_path": "/p/src/Button.tsx"}})
        )
        assert entry.kind == "tool_use"
        assert entry.summary == "Edit: Button.tsx"

    def test_bash_truncates_command(self):
        command = "npm run build -- " + "x" * 100
        entry = summarize_line(
            _assistant({"type": "tool_use", "name": "Bash", "input": {"command": command}})
        )
        assert entry.summary == f"Bash: {command[:60]}"

    def test_grep_uses_pattern(self):
        entry = summarize_line(
            _assistant({"type": "tool_use", "name": "Grep", "input": {"pattern": "useState"}})
        )
        assert entry.summary == "Grep: useState"

    def test_unknown_tool_is_bare_name(self):
        entry = summarize_line(_assistant({"type": "tool_use", "name": "TodoWrite", "input": {}}))
        assert entry.summary == "TodoWrite"

    def test_first_matching_block_wins(self):
        entry = summarize_line(
            _assistant(
                {"type": "thinking", "thinking": "hmm"},
                {"type": "text", "text": "   "},
                {"type": "text", "text": "Done"},
                {"type": "tool_use", "name": "Read", "input": {"file_path": "a.ts"}},
            )
        )
        assert entry.kind == "assistant"
        assert entry.summary == "Done"

    def test_tool_use_before_text(self):
        entry = summarize_line(
            _assistant(
                {"type": "tool_use", "name": "Read", "input": {"file_path": "/x/package.json"}},
                {"type": "text", "text": "Reading"},
            )
        )
        assert entry.summary == "Read: package.json"

    def test_no_blocks(self):
        assert summarize_line(_assistant()) is None


class TestMalformed:
    def test_unknown_type(self):
        assert summarize_line({"type": "summary", "summary": "x"}) is None

    def test_missing_fields(self):
        assert summarize_line({}) is None
        assert summarize_line({"type": "user"}) is None
        assert summarize_line({"type": "assistant", "message": "nope"}) is None
        assert summarize_line({"type": "assistant", "message": {"content": ["str", 3]}}) is None

    def test_bad_tool_input(self):
        entry = summarize_line(_assistant({"type": "tool_use", "name": "Edit", "input": "oops"}))
        assert entry.summary == "Edit"

    def test_not_a_dict(self):
        assert summarize_line(["user"]) is None
        assert summarize_line(None) is None

    def test_internal_error_returns_none(self):
        with patch.object(summarize_mod, "decode_line", side_effect=RuntimeError("boom")):
            assert summarize_line({"type": "user", "message": {"content": "hi"}}) is None


class TestEllipsis:
    def test_short_text_unchanged(self):
        assert ellipsize("a" * 120) == "a" * 120

    def test_long_text_is_exactly_120(self):
        out = ellipsize("b" * 500)
        assert len(out) == 120
        assert out.endswith("...")
        assert out[:117] == "b" * 117

    def test_long_user_message(self):
        entry = summarize_line({"type": "user", "message": {"content": "word " * 100}})
        assert len(entry.summary) == 120

    def test_long_tool_pattern(self):
        entry = summarize_line(
            _assistant({"type": "tool_use", "name": "Glob", "input": {"pattern": "*" * 300}})
        )
        assert len(entry.summary) == 120


class TestTimestamps:
    def test_iso_timestamp(self):
        assert parse_timestamp("2025-01-01T00:00:00.000Z") == 1735689600000

    def test_missing_timestamp_uses_now(self):
        with patch.object(summarize_mod, "now_ms", return_value=42):
            assert parse_timestamp(None) == 42
            assert parse_timestamp(1735689600) == 42
            assert parse_timestamp("yesterday") == 42

    def test_entry_carries_timestamp(self):
        entry = summarize_line(
            {"type": "user", "timestamp": "2025-01-01T00:00:01Z", "message": {"content": "x"}}
        )
        assert entry.timestamp == 1735689601000


class TestDecode:
    def test_variants(self):
        assert isinstance(decode_line({"type": "user", "message": {"content": "a"}}), UserLine)
        assert isinstance(decode_line(_assistant()), AssistantLine)
        other = decode_line({"type": "system"})
        assert isinstance(other, UnrecognizedLine)
        assert other.type == "system"
