"""Tests for the MCP request tools."""

import tempfile
from pathlib import Path
from types import SimpleNamespace

import pytest

from design_studio.config import Config
from design_studio.core.studio import Studio
from design_studio.mcp import server


class IdleProcess:
    async def read(self) -> bytes:
        return b""

    def kill(self):
        pass

    def close(self):
        pass

    async def wait(self) -> int:
        return 0


async def _spawn(shell, command, cwd, env):
    return IdleProcess()


@pytest.fixture
def ctx():
    with tempfile.TemporaryDirectory() as tmp:
        studio = Studio(Config(claude_dir=Path(tmp), screenshots_enabled=False), spawner=_spawn)
        lifespan = server.AppContext(studio=studio, config=studio.config)
        yield SimpleNamespace(request_context=SimpleNamespace(lifespan_context=lifespan))


class TestRequestTools:
    @pytest.mark.asyncio
    async def test_create_and_review(self, ctx):
        studio = ctx.request_context.lifespan_context.studio
        created = await server.create_request(ctx, "/p/my-site/", "Add a footer")
        assert created["projectId"] == "my-site"
        assert created["status"] == "queued"

        await studio.executor.idle()
        assert server.get_request(ctx, created["id"])["status"] == "review"
        assert [r["id"] for r in server.list_requests(ctx, status="review")] == [created["id"]]
        assert server.list_requests(ctx, project_id="other") == []

        approved = await server.approve_request(ctx, created["id"])
        assert approved["status"] == "approved"
        assert "error" in await server.reject_request(ctx, created["id"])
        await studio.executor.shutdown()

    @pytest.mark.asyncio
    async def test_errors(self, ctx):
        assert "error" in await server.create_request(ctx, "/p/site", "  ")
        assert "error" in server.get_request(ctx, "nope")
        assert "error" in await server.cancel_request(ctx, "nope")
