"""Screen capture used for before/after request screenshots."""

import asyncio
import logging

logger = logging.getLogger(__name__)


class ScreenCapturer:
    """Grab one monitor as PNG bytes with mss.

    ``capture_frame`` returns None instead of raising when there is no
    display to grab from, so a request can carry on without screenshots.
    """

    def __init__(self, monitor_index: int = 1):
        self.monitor_index = monitor_index

    def grab_png(self) -> bytes:
        import mss
        from mss import tools as mss_tools

        with mss.mss() as sct:
            monitors = sct.monitors
            index = min(max(self.monitor_index, 1), len(monitors) - 1)
            shot = sct.grab(monitors[index])
            return mss_tools.to_png(shot.rgb, shot.size)

    async def capture_frame(self) -> bytes | None:
        try:
            return await asyncio.to_thread(self.grab_png)
        except Exception as e:
            logger.warning("Screen capture unavailable: %s", e)
            return None
