"""Wire the feed, hint notifier and request executor into one runtime."""

import asyncio
import logging

from design_studio.config import Config
from design_studio.core.executor import RequestExecutor
from design_studio.core.hints import ChangeHintNotifier
from design_studio.core.live_feed import SessionWatchSet
from design_studio.core.requests import RequestStore
from design_studio.core.updates import UpdateHub
from design_studio.models import DesignRequest

logger = logging.getLogger(__name__)


class Studio:
    """Everything that runs on the event loop for one user."""

    def __init__(self, config: Config, capture_frame=None, spawner=None):
        self.config = config
        self.hub = UpdateHub()
        self.store = RequestStore(config.requests_dir)

        if capture_frame is None and config.screenshots_enabled:
            from design_studio.integrations.screenshots import ScreenCapturer

            capture_frame = ScreenCapturer().capture_frame

        self.executor = RequestExecutor(
            self.store,
            self.hub,
            agent_command=config.agent_command,
            shell=config.shell,
            capture_frame=capture_frame,
            spawner=spawner,
            on_review=self._notify_review,
        )
        self.feed = SessionWatchSet(
            config.projects_dir, self.hub, force_polling=config.force_polling
        )
        self.hints = ChangeHintNotifier(
            config.claude_dir,
            self.hub,
            roots=config.hint_roots,
            debounce=config.debounce_seconds,
            force_polling=config.force_polling,
        )
        self._started = False

    async def start(self):
        if self._started:
            return
        self._started = True
        await self.store.load()
        await self.executor.recover()
        self.executor.start()
        try:
            await self.hints.start()
        except Exception:
            logger.exception("Project change watching unavailable")

    async def stop(self):
        await self.feed.stop()
        await self.hints.stop()
        await self.executor.shutdown()
        self._started = False

    async def start_feed(self):
        await self.feed.start()

    async def stop_feed(self):
        await self.feed.stop()

    async def _notify_review(self, request: DesignRequest):
        """Best-effort Slack notice; only when a token and channel are set."""
        if not (self.config.slack_bot_token and self.config.slack_channel):
            return
        from design_studio.integrations import slack as slack_mod

        blocks = slack_mod.format_review_notification(request)
        await asyncio.to_thread(
            slack_mod.send_message,
            self.config.slack_bot_token,
            self.config.slack_channel,
            f"Request {request.id} is ready for review",
            blocks,
        )
