"""MCP server exposing design request tools."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from mcp.server.fastmcp import Context, FastMCP

from design_studio.config import Config, get_config
from design_studio.core.studio import Studio


@dataclass
class AppContext:
    studio: Studio
    config: Config


@asynccontextmanager
async def app_lifespan(server: FastMCP) -> AsyncIterator[AppContext]:
    """Start the studio runtime on startup, stop it on shutdown."""
    config = get_config()
    studio = Studio(config)
    await studio.start()
    try:
        yield AppContext(studio=studio, config=config)
    finally:
        await studio.stop()


mcp = FastMCP("design-studio", lifespan=app_lifespan)


def _studio(ctx: Context) -> Studio:
    return ctx.request_context.lifespan_context.studio


# ── Request Tools ─────────────────────────────────────────────────────────────


@mcp.tool()
async def create_request(
    ctx: Context,
    project_path: str,
    prompt: str,
    project_id: str | None = None,
) -> dict:
    """Queue a design request; Claude runs it in the project directory and it then waits for review."""
    try:
        request = await _studio(ctx).executor.create(
            project_id or project_path.rstrip("/").rsplit("/", 1)[-1],
            project_path,
            prompt,
        )
    except ValueError as e:
        return {"error": str(e)}
    return request.to_dict()


@mcp.tool()
def list_requests(ctx: Context, project_id: str | None = None, status: str | None = None) -> list[dict]:
    """List design requests, newest first, optionally filtered by project and status."""
    requests = _studio(ctx).store.list_requests(project_id)
    if status:
        requests = [r for r in requests if r.status == status]
    return [r.to_dict() for r in requests]


@mcp.tool()
def get_request(ctx: Context, request_id: str) -> dict:
    """Get one design request by ID."""
    request = _studio(ctx).store.get(request_id)
    if not request:
        return {"error": f"Request not found: {request_id}"}
    return request.to_dict()


@mcp.tool()
async def cancel_request(ctx: Context, request_id: str) -> dict:
    """Cancel a queued or running request. Kills its Claude process if one is running."""
    request = await _studio(ctx).executor.cancel(request_id)
    if not request:
        return {"error": f"Request not found: {request_id}"}
    return request.to_dict()


@mcp.tool()
async def approve_request(ctx: Context, request_id: str) -> dict:
    """Approve a request that is waiting for review."""
    request = await _studio(ctx).executor.approve(request_id)
    if not request:
        return {"error": f"No request in review with ID: {request_id}"}
    return request.to_dict()


@mcp.tool()
async def reject_request(ctx: Context, request_id: str) -> dict:
    """Reject a request that is waiting for review."""
    request = await _studio(ctx).executor.reject(request_id)
    if not request:
        return {"error": f"No request in review with ID: {request_id}"}
    return request.to_dict()
