"""Request execution: run the agent CLI under a PTY and drive the request lifecycle."""

import asyncio
import codecs
import fcntl
import logging
import os
import pty
import signal
import struct
import termios
from collections.abc import Awaitable, Callable
from pathlib import Path

from design_studio.core.requests import RequestStore
from design_studio.core.translate import split_output, translate_tool_use
from design_studio.core.updates import REQUEST_FEED, REQUEST_STATUS, UpdateHub
from design_studio.models import (
    APPROVED,
    IN_PROGRESS,
    QUEUED,
    REJECTED,
    REVIEW,
    TERMINAL_STATUSES,
    DesignRequest,
    RequestFeedEntry,
    now_ms,
)

logger = logging.getLogger(__name__)

PTY_COLS = 120
PTY_ROWS = 30
READ_CHUNK = 4096
OUTPUT_DRAIN_SECONDS = 1.0

CaptureFrame = Callable[[], Awaitable[bytes | None]]


# ── PTY subprocess ──────────────────────────────────────────────────────────


def _set_winsize(fd: int, rows: int, cols: int):
    try:
        fcntl.ioctl(fd, termios.TIOCSWINSZ, struct.pack("HHHH", rows, cols, 0, 0))
    except OSError:
        pass


def _acquire_controlling_tty():
    # Runs in the child after setsid(), with the slave already on stdin
    fcntl.ioctl(0, termios.TIOCSCTTY, 0)


class PtyProcess:
    """A shell command attached to a pseudo-terminal, read from the event loop."""

    def __init__(self, proc: asyncio.subprocess.Process, reader: asyncio.StreamReader, transport):
        self._proc = proc
        self._reader = reader
        self._transport = transport

    @property
    def pid(self) -> int:
        return self._proc.pid

    @classmethod
    async def spawn(
        cls,
        shell: str,
        command: str,
        cwd: str,
        env: dict | None = None,
    ) -> "PtyProcess":
        master, slave = pty.openpty()
        _set_winsize(slave, PTY_ROWS, PTY_COLS)
        try:
            proc = await asyncio.create_subprocess_exec(
                shell, "-c", command,
                stdin=slave,
                stdout=slave,
                stderr=slave,
                cwd=cwd,
                env=env,
                start_new_session=True,
                preexec_fn=_acquire_controlling_tty,
            )
        except BaseException:
            os.close(master)
            raise
        finally:
            os.close(slave)

        loop = asyncio.get_running_loop()
        reader = asyncio.StreamReader()
        transport, _ = await loop.connect_read_pipe(
            lambda: asyncio.StreamReaderProtocol(reader),
            os.fdopen(master, "rb", buffering=0),
        )
        return cls(proc, reader, transport)

    async def read(self) -> bytes:
        """Next chunk of output, or b"" once the terminal has closed."""
        try:
            return await self._reader.read(READ_CHUNK)
        except OSError:
            # Linux reports EIO on the master once every slave fd is closed
            return b""

    def kill(self):
        if self._proc.returncode is not None:
            return
        try:
            os.killpg(self._proc.pid, signal.SIGTERM)
        except ProcessLookupError:
            pass  # Already exited

    async def wait(self) -> int:
        return await self._proc.wait()

    def close(self):
        """Stop reading; any output still in flight is dropped."""
        self._transport.close()


Spawner = Callable[[str, str, str, dict | None], Awaitable[PtyProcess]]


def shell_quote(value: str) -> str:
    """Wrap in single quotes, escaping embedded quotes as '\\''."""
    return "'" + value.replace("'", "'\\''") + "'"


def build_agent_command(project_path: str, prompt: str, agent_command: str = "claude") -> str:
    return f"cd {shell_quote(project_path)} && {agent_command} --print {shell_quote(prompt)}"


# ── Executor ────────────────────────────────────────────────────────────────


class RequestExecutor:
    """Runs queued requests one at a time and owns their live subprocesses."""

    def __init__(
        self,
        store: RequestStore,
        hub: UpdateHub,
        agent_command: str = "claude",
        shell: str = "/bin/sh",
        capture_frame: CaptureFrame | None = None,
        spawner: Spawner | None = None,
        on_review: Callable[[DesignRequest], Awaitable[None]] | None = None,
        drain_seconds: float = OUTPUT_DRAIN_SECONDS,
    ):
        self.store = store
        self.hub = hub
        self.agent_command = agent_command
        self.shell = shell
        self.capture_frame = capture_frame
        self.spawner = spawner or PtyProcess.spawn
        self.on_review = on_review
        self.drain_seconds = drain_seconds
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._worker: asyncio.Task | None = None
        self._processes: dict[str, PtyProcess] = {}

    @property
    def running_ids(self) -> list[str]:
        return list(self._processes)

    def start(self):
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(
                self._run_worker(), name="request-executor"
            )

    async def shutdown(self):
        for request_id, proc in list(self._processes.items()):
            logger.info("Killing agent for request %s", request_id)
            proc.kill()
        self._processes.clear()
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

    async def idle(self):
        """Wait until every queued request has been executed."""
        await self._queue.join()

    async def recover(self) -> int:
        """Reconcile requests left behind by a previous process.

        Runs that were in progress have no subprocess any more and go to
        review with an error; queued ones are queued again, oldest first.
        """
        changed = 0
        for request in reversed(self.store.list_requests()):
            if request.status == IN_PROGRESS:
                request.status = REVIEW
                request.completed_at = now_ms()
                request.error = "Claude was interrupted before finishing"
                changed += 1
            elif request.status == QUEUED:
                self.start()
                self._queue.put_nowait(request.id)
        if changed:
            logger.warning("Marked %d interrupted requests for review", changed)
            await self.store.save()
        return changed

    # ── Control operations ──────────────────────────────────────────────────

    async def create(
        self,
        project_id: str,
        project_path: str,
        prompt: str,
        attachments: list[dict] | None = None,
    ) -> DesignRequest:
        request = await self.store.create(project_id, project_path, prompt, attachments)
        self._publish_status(request)
        self.start()
        self._queue.put_nowait(request.id)
        return request

    async def cancel(self, request_id: str) -> DesignRequest | None:
        proc = self._processes.pop(request_id, None)
        if proc is not None:
            proc.kill()

        request = self.store.get(request_id)
        if request is None:
            return None
        if request.status in TERMINAL_STATUSES:
            return request
        request.status = REJECTED
        request.completed_at = now_ms()
        await self.store.save()
        self._publish_status(request)
        logger.info("Cancelled request %s", request_id)
        return request

    async def approve(self, request_id: str) -> DesignRequest | None:
        return await self._review_decision(request_id, APPROVED)

    async def reject(self, request_id: str) -> DesignRequest | None:
        return await self._review_decision(request_id, REJECTED)

    async def _review_decision(self, request_id: str, status: str) -> DesignRequest | None:
        request = self.store.get(request_id)
        if request is None or request.status != REVIEW:
            return None
        request.status = status
        await self.store.save()
        self._publish_status(request)
        logger.info("Request %s %s", request_id, status)
        return request

    # ── Execution ───────────────────────────────────────────────────────────

    async def _run_worker(self):
        while True:
            request_id = await self._queue.get()
            try:
                request = self.store.get(request_id)
                if request is None or request.status != QUEUED:
                    logger.debug("Skipping request %s: no longer queued", request_id)
                    continue
                await self.execute(request)
            except Exception:
                logger.exception("Error executing request %s", request_id)
            finally:
                self._queue.task_done()

    async def execute(self, request: DesignRequest):
        request.status = IN_PROGRESS
        request.started_at = now_ms()
        self._publish_status(request)
        await self.store.save()

        before = await self._capture(request, "before")
        if before:
            request.screenshot_before = before
            await self.store.save()

        if request.status != IN_PROGRESS:
            return  # Cancelled while capturing

        command = build_agent_command(request.project_path, request.prompt, self.agent_command)
        env = {**os.environ, "TERM": "xterm-256color"}
        logger.info("Executing request %s: %s", request.id, request.prompt[:80])

        try:
            proc = await self.spawner(self.shell, command, request.project_path, env)
        except Exception as e:
            logger.warning("Failed to start agent for request %s: %s", request.id, e)
            await self._finish(request, exit_code=None, error=f"Failed to start Claude: {e}")
            return

        if request.status != IN_PROGRESS:
            # Cancelled while the process was starting
            proc.kill()
            await proc.wait()
            proc.close()
            logger.info("Request %s cancelled before its agent started", request.id)
            return

        self._processes[request.id] = proc
        output = asyncio.ensure_future(self._stream_output(request, proc))
        try:
            exit_code = await proc.wait()
            # Background children may keep the terminal open after the shell exits
            await asyncio.wait({output}, timeout=self.drain_seconds)
        finally:
            proc.close()
            self._processes.pop(request.id, None)
        await output

        if request.status != IN_PROGRESS:
            logger.info("Request %s ended after cancellation", request.id)
            return

        error = f"Claude exited with code {exit_code}" if exit_code != 0 else None
        await self._finish(request, exit_code, error)

    async def _stream_output(self, request: DesignRequest, proc):
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        pending = ""
        while True:
            chunk = await proc.read()
            if not chunk:
                break
            complete, _, pending = (pending + decoder.decode(chunk)).rpartition("\n")
            for line in split_output(complete):
                self._publish_line(request, line)
        for line in split_output(pending + decoder.decode(b"", final=True)):
            self._publish_line(request, line)

    def _publish_line(self, request: DesignRequest, line: str):
        entry = RequestFeedEntry(
            timestamp=now_ms(),
            kind="action",
            message=translate_tool_use(line),
            request_id=request.id,
            detail=line,
        )
        self.hub.publish(REQUEST_FEED, entry.to_dict())

    async def _finish(self, request: DesignRequest, exit_code: int | None, error: str | None):
        request.status = REVIEW
        request.completed_at = now_ms()
        request.error = error
        if error:
            logger.warning("Request %s failed: %s", request.id, error)
        else:
            logger.info("Request %s completed successfully", request.id)

        after = await self._capture(request, "after")
        if after:
            request.screenshot_after = after
        if request.status != REVIEW:
            # Cancelled while capturing; cancel() already published and saved
            await self.store.save()
            return

        self._publish_status(request)
        if error:
            terminal = RequestFeedEntry(now_ms(), "error", f"Request failed: {error}", request.id)
        else:
            terminal = RequestFeedEntry(
                now_ms(), "complete", "Request completed, ready for review", request.id
            )
        self.hub.publish(REQUEST_FEED, terminal.to_dict())
        await self.store.save()

        if self.on_review is not None:
            try:
                await self.on_review(request)
            except Exception:
                logger.exception("Review notification failed for request %s", request.id)

    async def _capture(self, request: DesignRequest, label: str) -> str | None:
        """Save a screenshot next to the snapshot; None if capture is unavailable."""
        if self.capture_frame is None:
            return None
        try:
            frame = await self.capture_frame()
            if not frame:
                logger.info("No %s screenshot available for request %s", label, request.id)
                return None
            path: Path = self.store.screenshot_path(request.id, label)
            await asyncio.to_thread(_write_frame, path, frame)
            return str(path)
        except Exception:
            logger.warning(
                "Failed to capture %s screenshot for request %s", label, request.id, exc_info=True
            )
            return None

    def _publish_status(self, request: DesignRequest):
        self.hub.publish(REQUEST_STATUS, request.to_dict())


def _write_frame(path: Path, frame: bytes):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(frame)
