"""Turn raw session-log events into one-line feed entries."""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime

from design_studio.models import FeedEntry, now_ms

logger = logging.getLogger(__name__)

MAX_SUMMARY = 120
ELLIPSIS = "..."
BASH_DETAIL_CHARS = 60

_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")


# ── Log line shapes ─────────────────────────────────────────────────────────


@dataclass
class UserLine:
    timestamp: int
    content: str | None


@dataclass
class AssistantLine:
    timestamp: int
    blocks: list[dict] = field(default_factory=list)


@dataclass
class UnrecognizedLine:
    timestamp: int
    type: object = None


LogLine = UserLine | AssistantLine | UnrecognizedLine


def parse_timestamp(value: object) -> int:
    """ISO-8601 string to epoch milliseconds, or now if absent/invalid."""
    if not isinstance(value, str):
        return now_ms()
    try:
        # fromisoformat() only accepts a trailing "Z" from 3.11 on
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return now_ms()
    return int(dt.timestamp() * 1000)


def decode_line(obj: dict) -> LogLine:
    """Decode a parsed JSONL object field by field."""
    timestamp = parse_timestamp(obj.get("timestamp"))
    message = obj.get("message")
    content = message.get("content") if isinstance(message, dict) else None

    if obj.get("type") == "user":
        return UserLine(timestamp, content if isinstance(content, str) else None)
    if obj.get("type") == "assistant":
        blocks = content if isinstance(content, list) else []
        return AssistantLine(timestamp, [b for b in blocks if isinstance(b, dict)])
    return UnrecognizedLine(timestamp, obj.get("type"))


# ── Summaries ───────────────────────────────────────────────────────────────


def collapse(text: str) -> str:
    return _WS_RE.sub(" ", text).strip()


def ellipsize(text: str, limit: int = MAX_SUMMARY) -> str:
    """Cut text to exactly `limit` characters, marker included, when too long."""
    if len(text) <= limit:
        return text
    return text[: limit - len(ELLIPSIS)] + ELLIPSIS


def tool_detail(name: str, tool_input: object) -> str:
    if not isinstance(tool_input, dict):
        return ""
    if name in ("Edit", "Read", "Write"):
        path = tool_input.get("file_path")
        return path.rsplit("/", 1)[-1] if isinstance(path, str) else ""
    if name == "Bash":
        command = tool_input.get("command")
        return command[:BASH_DETAIL_CHARS] if isinstance(command, str) else ""
    if name in ("Glob", "Grep"):
        pattern = tool_input.get("pattern")
        return pattern if isinstance(pattern, str) else ""
    return ""


def _summarize_assistant(line: AssistantLine) -> FeedEntry | None:
    for block in line.blocks:
        if block.get("type") == "tool_use":
            name = block.get("name") or "tool"
            if not isinstance(name, str):
                name = str(name)
            detail = tool_detail(name, block.get("input"))
            summary = f"{name}: {detail}" if detail else name
            return FeedEntry(line.timestamp, "tool_use", ellipsize(summary))
        if block.get("type") == "text" and isinstance(block.get("text"), str):
            text = collapse(block["text"])
            if text:
                return FeedEntry(line.timestamp, "assistant", ellipsize(text))
    return None


def summarize_line(obj: object) -> FeedEntry | None:
    """Summarize one session-log event, or None if it has nothing to show.

    Never raises: anything unexpected is logged and treated as no entry.
    The returned entry carries no project/session; the caller stamps those.
    """
    if not isinstance(obj, dict):
        return None
    try:
        line = decode_line(obj)
        if isinstance(line, UserLine):
            if line.content is None:
                return None
            clean = collapse(_TAG_RE.sub("", line.content))
            if not clean:
                return None
            return FeedEntry(line.timestamp, "user", ellipsize(clean))
        if isinstance(line, AssistantLine):
            return _summarize_assistant(line)
    except Exception:
        logger.warning("Failed to summarize session log entry", exc_info=True)
    return None
