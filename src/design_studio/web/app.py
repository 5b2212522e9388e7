"""HTTP API for design requests and the live update stream."""

import contextlib
import json

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, StreamingResponse
from starlette.routing import Route

from design_studio.config import Config, get_config
from design_studio.core.studio import Studio


def _studio(request: Request) -> Studio:
    return request.app.state.studio


# ── Handlers ──────────────────────────────────────────────────────────────────


async def api_list_requests(request: Request):
    project_id = request.query_params.get("project")
    requests = _studio(request).store.list_requests(project_id)
    return JSONResponse([r.to_dict() for r in requests])


async def api_get_request(request: Request):
    request_id = request.path_params["request_id"]
    design_request = _studio(request).store.get(request_id)
    if not design_request:
        return JSONResponse({"error": "Request not found"}, status_code=404)
    return JSONResponse(design_request.to_dict())


async def api_create_request(request: Request):
    try:
        data = await request.json()
    except ValueError:
        return JSONResponse({"error": "Body must be JSON"}, status_code=400)
    if not isinstance(data, dict):
        return JSONResponse({"error": "Body must be a JSON object"}, status_code=400)

    try:
        created = await _studio(request).executor.create(
            project_id=data.get("projectId") or "",
            project_path=data.get("projectPath") or "",
            prompt=data.get("prompt") or "",
            attachments=data.get("attachments"),
        )
    except ValueError as e:
        return JSONResponse({"error": str(e)}, status_code=400)
    return JSONResponse(created.to_dict(), status_code=201)


async def api_cancel_request(request: Request):
    request_id = request.path_params["request_id"]
    cancelled = await _studio(request).executor.cancel(request_id)
    if not cancelled:
        return JSONResponse({"error": "Request not found"}, status_code=404)
    return JSONResponse(cancelled.to_dict())


async def _review_decision(request: Request, approve: bool):
    request_id = request.path_params["request_id"]
    studio = _studio(request)
    existing = studio.store.get(request_id)
    if not existing:
        return JSONResponse({"error": "Request not found"}, status_code=404)
    if approve:
        updated = await studio.executor.approve(request_id)
    else:
        updated = await studio.executor.reject(request_id)
    if not updated:
        return JSONResponse(
            {"error": f"Request is {existing.status}, not in review"}, status_code=409
        )
    return JSONResponse(updated.to_dict())


async def api_approve_request(request: Request):
    return await _review_decision(request, approve=True)


async def api_reject_request(request: Request):
    return await _review_decision(request, approve=False)


async def api_feed_start(request: Request):
    studio = _studio(request)
    await studio.start_feed()
    return JSONResponse({"active": studio.feed.active, "files": len(studio.feed.watched_paths)})


async def api_feed_stop(request: Request):
    studio = _studio(request)
    await studio.stop_feed()
    return JSONResponse({"active": studio.feed.active})


async def api_events(request: Request):
    """Newline-delimited JSON stream of every pushed update."""
    try:
        limit = int(request.query_params.get("limit", "0"))
    except ValueError:
        return JSONResponse({"error": "limit must be an integer"}, status_code=400)
    if limit < 0:
        return JSONResponse({"error": "limit must not be negative"}, status_code=400)
    hub = _studio(request).hub

    async def messages():
        sent = 0
        async for message in hub.stream():
            yield json.dumps(message) + "\n"
            sent += 1
            if limit and sent >= limit:
                break

    return StreamingResponse(messages(), media_type="application/x-ndjson")


# ── App ───────────────────────────────────────────────────────────────────────


def create_app(config: Config | None = None, studio: Studio | None = None) -> Starlette:
    studio = studio or Studio(config or get_config())

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette):
        await studio.start()
        try:
            yield
        finally:
            await studio.stop()

    routes = [
        Route("/api/requests", api_list_requests, methods=["GET"]),
        Route("/api/requests", api_create_request, methods=["POST"]),
        Route("/api/requests/{request_id}", api_get_request, methods=["GET"]),
        Route("/api/requests/{request_id}/cancel", api_cancel_request, methods=["POST"]),
        Route("/api/requests/{request_id}/approve", api_approve_request, methods=["POST"]),
        Route("/api/requests/{request_id}/reject", api_reject_request, methods=["POST"]),
        Route("/api/feed/start", api_feed_start, methods=["POST"]),
        Route("/api/feed/stop", api_feed_stop, methods=["POST"]),
        Route("/api/events", api_events, methods=["GET"]),
    ]
    app = Starlette(routes=routes, lifespan=lifespan)
    app.state.studio = studio
    return app


def run_server(host: str = "127.0.0.1", port: int = 8787):
    app = create_app()
    uvicorn.run(app, host=host, port=port)
