"""File-change watchers built on watchfiles, run as tasks on the event loop."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path

from watchfiles import Change, DefaultFilter, awatch

logger = logging.getLogger(__name__)

FileCallback = Callable[[], Awaitable[None]]
PathCallback = Callable[[str], Awaitable[None]]

# watchfiles groups raw events for this long before yielding a batch
FILE_DEBOUNCE_MS = 50
TREE_DEBOUNCE_MS = 200
REBUILD_DELAY_SECONDS = 0.5


class FileWatcher:
    """Invoke a callback whenever a single file is written to."""

    def __init__(
        self,
        path: str | Path,
        callback: FileCallback,
        force_polling: bool | None = None,
    ):
        self.path = Path(path)
        self.callback = callback
        self.force_polling = force_polling
        self._stop: asyncio.Event | None = None
        self._task: asyncio.Task | None = None

    def start(self) -> "FileWatcher":
        if self._task is None:
            self._stop = asyncio.Event()
            self._task = asyncio.get_running_loop().create_task(
                self._run(), name=f"watch:{self.path.name}"
            )
        return self

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def close(self):
        if self._stop is not None:
            self._stop.set()
        if self._task is not None:
            self._task.cancel()
        self._task = None
        self._stop = None

    async def _run(self):
        try:
            async for _changes in awatch(
                self.path,
                stop_event=self._stop,
                debounce=FILE_DEBOUNCE_MS,
                force_polling=self.force_polling,
            ):
                try:
                    await self.callback()
                except Exception:
                    logger.exception("File watcher callback failed for %s", self.path)
        except OSError as e:
            logger.warning("Cannot watch %s: %s", self.path, e)


class DepthFilter(DefaultFilter):
    """Accept changes at most `depth` directories below one of the roots."""

    def __init__(self, roots: list[Path], depth: int):
        super().__init__()
        self.roots = roots
        self.depth = depth

    def __call__(self, change: Change, path: str) -> bool:
        if not super().__call__(change, path):
            return False
        candidate = Path(path)
        for root in self.roots:
            if candidate == root:
                return True
            try:
                relative = candidate.relative_to(root)
            except ValueError:
                continue
            return len(relative.parts) <= self.depth + 1
        return False


def _existing_ancestor(path: Path) -> Path:
    for parent in path.parents:
        if parent.exists():
            return parent
    return Path(path.anchor or "/")


class TreeWatcher:
    """Report changed paths under a set of roots, some of which may not exist yet.

    Existing roots are watched recursively. A missing root is watched through
    its nearest existing parent; once it appears (or an existing root goes
    away) the watch is rebuilt.
    """

    def __init__(
        self,
        roots: list[str | Path],
        callback: PathCallback,
        depth: int = 3,
        force_polling: bool | None = None,
    ):
        self.roots = [Path(r) for r in roots]
        self.callback = callback
        self.depth = depth
        self.force_polling = force_polling
        self._closed = asyncio.Event()
        self._round: asyncio.Event | None = None
        self._task: asyncio.Task | None = None

    async def start(self) -> "TreeWatcher":
        if self._task is None:
            self._closed.clear()
            self._task = asyncio.get_running_loop().create_task(self._run(), name="watch:tree")
        return self

    def close(self):
        self._closed.set()
        if self._round is not None:
            self._round.set()
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self):
        while not self._closed.is_set():
            present = [r for r in self.roots if r.exists()]
            missing = [r for r in self.roots if not r.exists()]
            self._round = asyncio.Event()
            streams = []
            if present:
                streams.append(self._relay(present, present, recursive=True))
            if missing:
                parents = sorted({_existing_ancestor(r) for r in missing})
                streams.append(self._relay(parents, missing, recursive=False))
            if not streams:
                await self._closed.wait()
            await asyncio.gather(*streams)

    async def _relay(self, targets: list[Path], roots: list[Path], recursive: bool):
        watch_filter = DepthFilter(roots, self.depth) if recursive else None
        try:
            async for changes in awatch(
                *targets,
                watch_filter=watch_filter,
                stop_event=self._round,
                debounce=TREE_DEBOUNCE_MS,
                recursive=recursive,
                force_polling=self.force_polling,
            ):
                rebuild = False
                for change, path in sorted(changes, key=lambda c: c[1]):
                    changed = Path(path)
                    if not recursive and changed not in roots:
                        continue
                    if changed in self.roots and (change == Change.deleted) == recursive:
                        rebuild = True
                    try:
                        await self.callback(path)
                    except Exception:
                        logger.exception("Tree watcher callback failed for %s", path)
                if rebuild:
                    self._round.set()
        except FileNotFoundError:
            # A root vanished between the existence check and the watch
            await asyncio.sleep(REBUILD_DELAY_SECONDS)
            self._round.set()
        except OSError as e:
            logger.warning("Cannot watch %s: %s", ", ".join(map(str, targets)), e)
            await self._round.wait()
