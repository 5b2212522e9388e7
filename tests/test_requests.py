"""Tests for the request store and its snapshot."""

import json
import tempfile
from pathlib import Path

import pytest

from design_studio.core.requests import RequestStore, read_snapshot
from design_studio.models import DesignRequest


@pytest.fixture
def requests_dir():
    with tempfile.TemporaryDirectory() as tmp:
        yield Path(tmp) / "studio" / "requests"


class TestRequestStore:
    @pytest.mark.asyncio
    async def test_create_persists_queued_request(self, requests_dir):
        store = RequestStore(requests_dir)
        request = await store.create(
            "site",
            "/p/site",
            "Make the header sticky",
            attachments=[{"id": "1", "type": "figma", "url": "https://figma.com/x", "label": "Header"}],
        )
        assert request.status == "queued"
        assert request.created_at > 0
        assert request.started_at is None

        text = (requests_dir / "requests.json").read_text()
        assert text.startswith("[\n  {")
        data = json.loads(text)
        assert len(data) == 1
        assert data[0]["id"] == request.id
        assert data[0]["projectPath"] == "/p/site"
        assert data[0]["status"] == "queued"
        assert data[0]["attachments"][0]["label"] == "Header"
        assert "completedAt" not in data[0]

    @pytest.mark.asyncio
    async def test_newest_first_and_filter(self, requests_dir):
        store = RequestStore(requests_dir)
        first = await store.create("a", "/p/a", "one")
        second = await store.create("b", "/p/b", "two")
        third = await store.create("a", "/p/a", "three")

        assert [r.id for r in store.list_requests()] == [third.id, second.id, first.id]
        assert [r.id for r in store.list_requests("a")] == [third.id, first.id]
        assert store.get(second.id) is second
        assert store.get("missing") is None

    @pytest.mark.asyncio
    async def test_unique_ids(self, requests_dir):
        store = RequestStore(requests_dir)
        ids = {(await store.create("a", "/p/a", f"prompt {i}")).id for i in range(20)}
        assert len(ids) == 20

    @pytest.mark.asyncio
    async def test_empty_prompt_rejected(self, requests_dir):
        store = RequestStore(requests_dir)
        with pytest.raises(ValueError, match="Prompt"):
            await store.create("a", "/p/a", "   ")
        with pytest.raises(ValueError, match="Project path"):
            await store.create("a", "", "hi")
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_reload(self, requests_dir):
        store = RequestStore(requests_dir)
        request = await store.create("a", "/p/a", "hello")
        request.status = "review"
        request.error = "Claude exited with code 1"
        await store.save()

        reloaded = RequestStore(requests_dir)
        loaded = await reloaded.load()
        assert len(loaded) == 1
        assert loaded[0].status == "review"
        assert loaded[0].error == "Claude exited with code 1"
        assert loaded[0].created_at == request.created_at

    @pytest.mark.asyncio
    async def test_load_missing_or_corrupt(self, requests_dir):
        store = RequestStore(requests_dir)
        assert await store.load() == []

        requests_dir.mkdir(parents=True)
        (requests_dir / "requests.json").write_text("{not json")
        assert await store.load() == []

    def test_read_snapshot_defaults(self, requests_dir):
        requests_dir.mkdir(parents=True)
        path = requests_dir / "requests.json"
        path.write_text(json.dumps([{"id": "x", "projectId": "p", "prompt": "hi"}]))
        [request] = read_snapshot(path)
        assert request.id == "x"
        assert request.status == "queued"
        assert request.attachments == []


class TestDesignRequestDict:
    def test_optional_fields_omitted(self):
        d = DesignRequest(id="1", project_id="p", project_path="/p", prompt="x").to_dict()
        for key in ("startedAt", "completedAt", "screenshotBefore", "screenshotAfter", "error"):
            assert key not in d

    def test_camel_case_keys(self):
        d = DesignRequest(
            id="1", project_id="p", project_path="/p", prompt="x",
            started_at=1, completed_at=2, screenshot_after="/a.png",
        ).to_dict()
        assert d["startedAt"] == 1
        assert d["completedAt"] == 2
        assert d["screenshotAfter"] == "/a.png"
