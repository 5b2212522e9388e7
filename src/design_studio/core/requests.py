"""Design request records and their on-disk snapshot."""

import asyncio
import json
import logging
import uuid
from pathlib import Path

from design_studio.models import QUEUED, DesignRequest, RequestAttachment

logger = logging.getLogger(__name__)

SNAPSHOT_FILE = "requests.json"


def read_snapshot(path: Path) -> list[DesignRequest]:
    """Load requests from a snapshot file; empty if missing or unreadable."""
    if not path.exists():
        return []
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return [DesignRequest.from_dict(item) for item in data]
    except (OSError, ValueError, KeyError, TypeError) as e:
        logger.warning("Ignoring unreadable request snapshot %s: %s", path, e)
        return []


def write_snapshot(path: Path, payload: list[dict]):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")


class RequestStore:
    """Authoritative in-memory list of requests, newest first.

    Every mutation is followed by ``await store.save()``, which rewrites the
    whole snapshot.
    """

    def __init__(self, requests_dir: str | Path):
        self.requests_dir = Path(requests_dir)
        self.snapshot_path = self.requests_dir / SNAPSHOT_FILE
        self._requests: list[DesignRequest] = []

    async def load(self) -> list[DesignRequest]:
        self._requests = await asyncio.to_thread(read_snapshot, self.snapshot_path)
        logger.info("Loaded %d persisted requests", len(self._requests))
        return self._requests

    async def save(self):
        # Serialize on the loop so the snapshot reflects this exact moment
        payload = [r.to_dict() for r in self._requests]
        await asyncio.to_thread(write_snapshot, self.snapshot_path, payload)

    def screenshot_path(self, request_id: str, label: str) -> Path:
        return self.requests_dir / f"{request_id}-{label}.png"

    async def create(
        self,
        project_id: str,
        project_path: str,
        prompt: str,
        attachments: list[dict] | None = None,
    ) -> DesignRequest:
        if not prompt or not prompt.strip():
            raise ValueError("Prompt must not be empty")
        if not project_path:
            raise ValueError("Project path is required")
        request = DesignRequest(
            id=str(uuid.uuid4()),
            project_id=project_id,
            project_path=project_path,
            prompt=prompt,
            attachments=[RequestAttachment.from_dict(a) for a in attachments or []],
            status=QUEUED,
        )
        self._requests.insert(0, request)
        await self.save()
        logger.info("Created request %s for project %s", request.id, project_id)
        return request

    def get(self, request_id: str) -> DesignRequest | None:
        for request in self._requests:
            if request.id == request_id:
                return request
        return None

    def list_requests(self, project_id: str | None = None) -> list[DesignRequest]:
        if project_id:
            return [r for r in self._requests if r.project_id == project_id]
        return list(self._requests)

    def __len__(self) -> int:
        return len(self._requests)
