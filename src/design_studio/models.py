"""Data models for the design studio pipeline."""

import time
from dataclasses import dataclass, field

# Request lifecycle
DRAFT = "draft"
QUEUED = "queued"
IN_PROGRESS = "in_progress"
REVIEW = "review"
APPROVED = "approved"
REJECTED = "rejected"

REQUEST_STATUSES = (DRAFT, QUEUED, IN_PROGRESS, REVIEW, APPROVED, REJECTED)
TERMINAL_STATUSES = (APPROVED, REJECTED)

FEED_KINDS = ("user", "assistant", "tool_use", "tool_result", "system")
REQUEST_FEED_KINDS = ("info", "action", "progress", "complete", "error")
ATTACHMENT_TYPES = ("figma", "screenshot", "reference_url")


def now_ms() -> int:
    """Current wall-clock time in integer milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class FeedEntry:
    timestamp: int
    kind: str
    summary: str
    project_path: str = ""
    session_id: str = ""

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "kind": self.kind,
            "summary": self.summary,
            "projectPath": self.project_path,
            "sessionId": self.session_id,
        }


@dataclass(frozen=True)
class RequestFeedEntry:
    timestamp: int
    kind: str
    message: str
    request_id: str
    detail: str | None = None

    def to_dict(self) -> dict:
        d = {
            "timestamp": self.timestamp,
            "kind": self.kind,
            "message": self.message,
            "requestId": self.request_id,
        }
        if self.detail is not None:
            d["detail"] = self.detail
        return d


@dataclass
class RequestAttachment:
    id: str
    type: str
    url: str
    label: str
    thumbnail: str | None = None

    def to_dict(self) -> dict:
        d = {"id": self.id, "type": self.type, "url": self.url, "label": self.label}
        if self.thumbnail is not None:
            d["thumbnail"] = self.thumbnail
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "RequestAttachment":
        return cls(
            id=str(data.get("id", "")),
            type=str(data.get("type", "reference_url")),
            url=str(data.get("url", "")),
            label=str(data.get("label", "")),
            thumbnail=data.get("thumbnail"),
        )


@dataclass
class DesignRequest:
    id: str
    project_id: str
    project_path: str
    prompt: str
    attachments: list[RequestAttachment] = field(default_factory=list)
    status: str = QUEUED
    created_at: int = field(default_factory=now_ms)
    started_at: int | None = None
    completed_at: int | None = None
    screenshot_before: str | None = None
    screenshot_after: str | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "projectId": self.project_id,
            "projectPath": self.project_path,
            "prompt": self.prompt,
            "attachments": [a.to_dict() for a in self.attachments],
            "status": self.status,
            "createdAt": self.created_at,
        }
        optional = {
            "startedAt": self.started_at,
            "completedAt": self.completed_at,
            "screenshotBefore": self.screenshot_before,
            "screenshotAfter": self.screenshot_after,
            "error": self.error,
        }
        d.update({k: v for k, v in optional.items() if v is not None})
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "DesignRequest":
        return cls(
            id=data["id"],
            project_id=data.get("projectId", ""),
            project_path=data.get("projectPath", ""),
            prompt=data.get("prompt", ""),
            attachments=[
                RequestAttachment.from_dict(a) for a in data.get("attachments") or []
            ],
            status=data.get("status", QUEUED),
            created_at=data.get("createdAt") or now_ms(),
            started_at=data.get("startedAt"),
            completed_at=data.get("completedAt"),
            screenshot_before=data.get("screenshotBefore"),
            screenshot_after=data.get("screenshotAfter"),
            error=data.get("error"),
        )
