"""Debounced project refresh hints from changes under the Claude directory."""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path, PurePath

from design_studio.core.updates import PROJECT_REFRESH, UpdateHub
from design_studio.core.watching import TreeWatcher

logger = logging.getLogger(__name__)

GLOBAL_HINT = "__global__"
SETTINGS_HINT = "__settings__"
DEBOUNCE_SECONDS = 2.0
WATCH_DEPTH = 3


@dataclass(frozen=True)
class ChangeHint:
    project_key: str | None = None
    is_global: bool = False
    is_settings: bool = False


def classify_change(path: str | Path, claude_dir: str | Path) -> ChangeHint:
    """Work out which project (if any) a changed path belongs to."""
    path = PurePath(path)
    root = PurePath(claude_dir)
    if path == root / "settings.json":
        return ChangeHint(is_settings=True)
    try:
        parts = path.relative_to(root).parts
    except ValueError:
        return ChangeHint(is_global=True)
    if len(parts) >= 2 and parts[0] in ("tasks", "teams"):
        return ChangeHint(project_key=parts[1])
    return ChangeHint(is_global=True)


def flush_hints(pending: set[ChangeHint]) -> list[str]:
    """Project keys first (sorted), then the sentinels that apply."""
    keys = sorted({h.project_key for h in pending if h.project_key})
    if any(h.is_global for h in pending):
        keys.append(GLOBAL_HINT)
    if any(h.is_settings for h in pending):
        keys.append(SETTINGS_HINT)
    return keys


class ChangeHintNotifier:
    """Collapse bursts of filesystem changes into one refresh notification.

    Every change restarts the debounce window; when it elapses the collected
    hints are published once as ``{"refresh": True, "hints": [...]}``.
    """

    def __init__(
        self,
        claude_dir: str | Path,
        hub: UpdateHub,
        roots: list[Path] | None = None,
        debounce: float = DEBOUNCE_SECONDS,
        force_polling: bool | None = None,
    ):
        self.claude_dir = Path(claude_dir)
        self.hub = hub
        self.roots = roots or [
            self.claude_dir / "tasks",
            self.claude_dir / "teams",
            self.claude_dir / "plans",
            self.claude_dir / "settings.json",
        ]
        self.debounce = debounce
        self.force_polling = force_polling
        self._pending: set[ChangeHint] = set()
        self._timer: asyncio.TimerHandle | None = None
        self._watcher: TreeWatcher | None = None

    @property
    def pending(self) -> set[ChangeHint]:
        return set(self._pending)

    async def start(self):
        if self._watcher is not None:
            return
        self._watcher = TreeWatcher(
            self.roots, self._on_path_changed, depth=WATCH_DEPTH, force_polling=self.force_polling
        )
        await self._watcher.start()
        logger.info("Watching %d roots for project changes", len(self.roots))

    async def stop(self):
        if self._watcher is not None:
            self._watcher.close()
            self._watcher = None
        self._cancel_timer()
        self._pending.clear()

    async def _on_path_changed(self, path: str):
        self.notify_change(path)

    def notify_change(self, path: str | Path):
        """Record one raw change event and restart the debounce window."""
        self._pending.add(classify_change(path, self.claude_dir))
        self._cancel_timer()
        self._timer = asyncio.get_running_loop().call_later(self.debounce, self.flush)

    def flush(self):
        self._timer = None
        if not self._pending:
            return
        hints = flush_hints(self._pending)
        self._pending.clear()
        logger.debug("Project refresh hints: %s", hints)
        self.hub.publish(PROJECT_REFRESH, {"refresh": True, "hints": hints})

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
