"""CLI entry point for the design studio."""

import asyncio
import json
import logging
import sys
from datetime import datetime

import click

from design_studio.config import get_config
from design_studio.core.executor import RequestExecutor
from design_studio.core.hints import ChangeHintNotifier
from design_studio.core.live_feed import SessionWatchSet
from design_studio.core.requests import RequestStore
from design_studio.core.updates import FEED_BATCH, PROJECT_REFRESH, UpdateHub


def _load_store() -> RequestStore:
    config = get_config()
    store = RequestStore(config.requests_dir)
    asyncio.run(store.load())
    return store


def _fmt_ms(value: int | None) -> str:
    if value is None:
        return "-"
    return datetime.fromtimestamp(value / 1000).strftime("%Y-%m-%d %H:%M:%S")


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
def main(verbose):
    """studio - design request orchestration and live agent feed"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


# ── Request Commands ──────────────────────────────────────────────────────────


@main.group("requests")
def requests_group():
    """Inspect and review design requests (reads the local snapshot)."""
    pass


@requests_group.command("list")
@click.option("--project", default=None, help="Project ID")
@click.option("--status", default=None, help="Filter by status")
@click.option("--json-output", "--json", is_flag=True, help="Output as JSON")
def requests_list(project, status, json_output):
    """List design requests, newest first."""
    requests = _load_store().list_requests(project)
    if status:
        requests = [r for r in requests if r.status == status]

    if json_output:
        click.echo(json.dumps([r.to_dict() for r in requests], indent=2))
        return

    if not requests:
        click.echo("No requests found.")
        return

    status_icons = {
        "draft": "·",
        "queued": "○",
        "in_progress": "●",
        "review": "◐",
        "approved": "✓",
        "rejected": "✗",
    }
    for r in requests:
        icon = status_icons.get(r.status, "?")
        prompt = r.prompt if len(r.prompt) <= 60 else r.prompt[:57] + "..."
        click.echo(f"  {icon} {r.id} [{r.project_id}] {prompt} ({r.status})")


@requests_group.command("show")
@click.argument("request_id")
def requests_show(request_id):
    """Show request details."""
    r = _load_store().get(request_id)
    if not r:
        click.echo(f"Request not found: {request_id}", err=True)
        sys.exit(1)

    click.echo(f"Request: {r.id}")
    click.echo(f"  Project: {r.project_id} ({r.project_path})")
    click.echo(f"  Status: {r.status}")
    click.echo(f"  Prompt: {r.prompt}")
    click.echo(f"  Created: {_fmt_ms(r.created_at)}")
    if r.started_at:
        click.echo(f"  Started: {_fmt_ms(r.started_at)}")
    if r.completed_at:
        click.echo(f"  Completed: {_fmt_ms(r.completed_at)}")
    if r.error:
        click.echo(f"  Error: {r.error}")
    if r.screenshot_before:
        click.echo(f"  Before: {r.screenshot_before}")
    if r.screenshot_after:
        click.echo(f"  After: {r.screenshot_after}")
    for a in r.attachments:
        click.echo(f"  Attachment: {a.label} ({a.type}) {a.url}")


def _decide(request_id: str, approve: bool):
    config = get_config()

    async def run():
        store = RequestStore(config.requests_dir)
        await store.load()
        executor = RequestExecutor(store, UpdateHub())
        if approve:
            return store.get(request_id), await executor.approve(request_id)
        return store.get(request_id), await executor.reject(request_id)

    existing, updated = asyncio.run(run())
    if not existing:
        click.echo(f"Request not found: {request_id}", err=True)
        sys.exit(1)
    if not updated:
        click.echo(f"Error: request {request_id} is {existing.status}, not in review", err=True)
        sys.exit(1)
    click.echo(f"Request {request_id} {updated.status}")


@requests_group.command("approve")
@click.argument("request_id")
def requests_approve(request_id):
    """Approve a request waiting for review."""
    _decide(request_id, approve=True)


@requests_group.command("reject")
@click.argument("request_id")
def requests_reject(request_id):
    """Reject a request waiting for review."""
    _decide(request_id, approve=False)


# ── Live Commands ─────────────────────────────────────────────────────────────


async def _print_updates(hub: UpdateHub):
    async for message in hub.stream():
        payload = message["payload"]
        if message["channel"] == FEED_BATCH:
            for entry in payload:
                ts = _fmt_ms(entry["timestamp"])
                project = entry["projectPath"].rstrip("/").rsplit("/", 1)[-1]
                click.echo(f"{ts} {project:<20} {entry['kind']:<10} {entry['summary']}")
        elif message["channel"] == PROJECT_REFRESH:
            click.echo(f"refresh: {', '.join(payload['hints'])}")


@main.command("feed")
def feed_command():
    """Print the live session feed until interrupted."""
    config = get_config()

    async def run():
        hub = UpdateHub()
        watch_set = SessionWatchSet(config.projects_dir, hub, force_polling=config.force_polling)
        await watch_set.start()
        click.echo(f"Watching {len(watch_set.watched_paths)} session logs (Ctrl-C to stop)")
        try:
            await _print_updates(hub)
        finally:
            await watch_set.stop()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


@main.command("watch")
def watch_command():
    """Print project refresh hints as the Claude directory changes."""
    config = get_config()

    async def run():
        hub = UpdateHub()
        notifier = ChangeHintNotifier(
            config.claude_dir,
            hub,
            roots=config.hint_roots,
            debounce=config.debounce_seconds,
            force_polling=config.force_polling,
        )
        await notifier.start()
        try:
            await _print_updates(hub)
        finally:
            await notifier.stop()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


# ── Server Commands ──────────────────────────────────────────────────────────


@main.command("serve")
@click.option("--host", default=None, help="Host to bind to")
@click.option("--port", default=None, type=int, help="Port to listen on")
def serve_command(host, port):
    """Run the request API and live update stream."""
    from design_studio.web.app import run_server

    config = get_config()
    host = host or config.host
    port = port or config.port
    click.echo(f"Serving on http://{host}:{port}")
    run_server(host=host, port=port)


@main.group("mcp")
def mcp_group():
    """MCP server commands."""
    pass


@mcp_group.command("serve")
def mcp_serve():
    """Start the MCP server (stdio transport)."""
    from design_studio.mcp.server import mcp

    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
