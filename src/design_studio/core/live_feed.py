"""Live session feed: tail recently active session logs and push summaries."""

import asyncio
import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from pathlib import Path

from design_studio.core.summarize import summarize_line
from design_studio.core.updates import FEED_BATCH, UpdateHub
from design_studio.core.watching import FileWatcher
from design_studio.models import FeedEntry

logger = logging.getLogger(__name__)

MAX_READ_BYTES = 50_000
RECENT_WINDOW_SECONDS = 30 * 60
FILES_PER_PROJECT = 3
RESCAN_SECONDS = 30.0


# ── Project directory names ─────────────────────────────────────────────────


def encode_project_path(path: str) -> str:
    """'/Users/me/site' -> '-Users-me-site'."""
    return path.replace("/", "-")


def decode_project_dir(name: str) -> str:
    """'-Users-me-site' -> '/Users/me/site'. Hyphens inside names are lost."""
    if name.startswith("-"):
        name = "/" + name[1:]
    return name.replace("-", "/")


# ── Tailing ─────────────────────────────────────────────────────────────────


@dataclass
class TailState:
    path: Path
    offset: int
    watcher: object = None


def _read_tail(path: Path, offset: int, limit: int) -> tuple[int, bytes]:
    """Return (current size, bytes read from offset). Reads nothing if no growth."""
    size = path.stat().st_size
    if size <= offset:
        return size, b""
    with open(path, "rb") as f:
        f.seek(offset)
        return size, f.read(min(size - offset, limit))


def parse_lines(text: str) -> list[dict]:
    """Parse newline-delimited JSON, skipping lines that fail to parse."""
    objects = []
    for line in text.split("\n"):
        if not line.strip():
            continue
        try:
            objects.append(json.loads(line))
        except json.JSONDecodeError as e:
            logger.warning("Skipping malformed session log line: %s", e)
    return objects


class JsonlTailer:
    """Read only the unread tail of one session log on every trigger."""

    def __init__(
        self,
        path: str | Path,
        project_path: str,
        session_id: str,
        on_entries: Callable[[list[FeedEntry]], None],
        offset: int = 0,
        max_read: int = MAX_READ_BYTES,
    ):
        self.state = TailState(Path(path), offset)
        self.project_path = project_path
        self.session_id = session_id
        self.on_entries = on_entries
        self.max_read = max_read
        self._lock = asyncio.Lock()

    @property
    def offset(self) -> int:
        return self.state.offset

    async def process_new_lines(self) -> list[FeedEntry]:
        """Consume newly appended bytes and emit their summaries as one batch."""
        async with self._lock:
            try:
                size, data = await asyncio.to_thread(
                    _read_tail, self.state.path, self.state.offset, self.max_read
                )
            except OSError as e:
                logger.warning("Failed to read %s: %s", self.state.path, e)
                return []

            if size < self.state.offset:
                # Truncated or rotated: resume from the new end, no replay
                logger.info(
                    "Session log shrank from %d to %d bytes: %s",
                    self.state.offset, size, self.state.path,
                )
                self.state.offset = size
                return []
            if not data:
                return []

            self.state.offset += len(data)

        entries = []
        for obj in parse_lines(data.decode("utf-8", errors="replace")):
            entry = summarize_line(obj)
            if entry is not None:
                entries.append(
                    replace(entry, project_path=self.project_path, session_id=self.session_id)
                )
        if entries:
            self.on_entries(entries)
        return entries


# ── Watch set ───────────────────────────────────────────────────────────────


@dataclass
class SessionFile:
    path: Path
    project_path: str
    session_id: str
    mtime: float
    size: int


def discover_session_files(
    projects_dir: Path,
    now: float | None = None,
    window: float = RECENT_WINDOW_SECONDS,
    per_project: int = FILES_PER_PROJECT,
) -> list[SessionFile]:
    """Most recently modified session logs of every project, newest first."""
    cutoff = (now if now is not None else time.time()) - window
    found: list[SessionFile] = []
    try:
        project_dirs = sorted(projects_dir.iterdir())
    except OSError as e:
        logger.warning("Failed to read projects directory %s: %s", projects_dir, e)
        return found

    for project_dir in project_dirs:
        try:
            if not project_dir.is_dir():
                continue
            candidates = []
            for log_file in project_dir.glob("*.jsonl"):
                try:
                    st = log_file.stat()
                except OSError as e:
                    logger.warning("Failed to stat session log %s: %s", log_file, e)
                    continue
                if st.st_mtime > cutoff:
                    candidates.append((st.st_mtime, st.st_size, log_file))
        except OSError as e:
            logger.warning("Failed to scan project directory %s: %s", project_dir, e)
            continue

        candidates.sort(key=lambda c: c[0], reverse=True)
        project_path = decode_project_dir(project_dir.name)
        for mtime, size, log_file in candidates[:per_project]:
            found.append(SessionFile(log_file, project_path, log_file.stem, mtime, size))
    return found


WatchFactory = Callable[[Path, Callable], object]


class SessionWatchSet:
    """Keep a tailer on each recently active session log under the log root."""

    def __init__(
        self,
        projects_dir: str | Path,
        hub: UpdateHub,
        watch_factory: WatchFactory | None = None,
        force_polling: bool | None = None,
        rescan_interval: float = RESCAN_SECONDS,
    ):
        self.projects_dir = Path(projects_dir)
        self.hub = hub
        self.force_polling = force_polling
        self.rescan_interval = rescan_interval
        self._watch_factory = watch_factory or self._file_watch
        self._tailers: dict[Path, JsonlTailer] = {}
        self._rescan_task: asyncio.Task | None = None
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    @property
    def watched_paths(self) -> list[Path]:
        return list(self._tailers)

    def tailer(self, path: str | Path) -> JsonlTailer | None:
        return self._tailers.get(Path(path))

    def _file_watch(self, path: Path, callback) -> FileWatcher:
        return FileWatcher(path, callback, force_polling=self.force_polling).start()

    def _publish(self, entries: list[FeedEntry]):
        self.hub.publish(FEED_BATCH, [e.to_dict() for e in entries])

    async def start(self):
        if self._active:
            return
        self._active = True
        await self.rescan()
        if not self._active:
            return  # Stopped while the first scan was running
        if self._rescan_task is not None:
            self._rescan_task.cancel()
        self._rescan_task = asyncio.get_running_loop().create_task(
            self._rescan_loop(), name="live-feed-rescan"
        )
        logger.info("Live feed started (%d files)", len(self._tailers))

    async def stop(self):
        if self._rescan_task is not None:
            self._rescan_task.cancel()
            self._rescan_task = None
        for path in list(self._tailers):
            self._drop(path)
        if self._active:
            logger.info("Live feed stopped")
        self._active = False

    async def _rescan_loop(self):
        while self._active:
            await asyncio.sleep(self.rescan_interval)
            try:
                await self.rescan()
            except Exception:
                logger.exception("Live feed rescan failed")

    async def rescan(self):
        """Watch newly active session logs and drop those no longer selected."""
        if not self.projects_dir.is_dir():
            return
        files = await asyncio.to_thread(discover_session_files, self.projects_dir)
        if not self._active:
            return
        selected = {f.path for f in files}

        for path in [p for p in self._tailers if p not in selected]:
            self._drop(path)

        for f in files:
            if f.path in self._tailers:
                continue
            tailer = JsonlTailer(
                f.path, f.project_path, f.session_id, self._publish, offset=f.size
            )
            try:
                tailer.state.watcher = self._watch_factory(f.path, tailer.process_new_lines)
            except Exception:
                logger.exception("Failed to watch %s", f.path)
                continue
            self._tailers[f.path] = tailer
            logger.debug("Tailing %s from byte %d", f.path, f.size)

    def _drop(self, path: Path):
        tailer = self._tailers.pop(path, None)
        if tailer is not None and tailer.state.watcher is not None:
            tailer.state.watcher.close()
