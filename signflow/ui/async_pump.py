"""Drives a private asyncio loop from the Qt event loop."""

from __future__ import annotations

import asyncio

from PySide6.QtCore import QObject, QTimer
import structlog

logger = structlog.get_logger(__name__)


class AsyncioPump(QObject):
    """Runs one iteration of ``loop`` every ``interval_ms`` on the GUI thread."""

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop | None = None,
        interval_ms: int = 10,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self.loop = loop or asyncio.new_event_loop()
        self._timer = QTimer(self)
        self._timer.setInterval(interval_ms)
        self._timer.timeout.connect(self._step)

    def start(self) -> None:
        self._timer.start()

    def stop(self) -> None:
        self._timer.stop()

    def run_until_idle(self, timeout: float = 5.0) -> None:
        """Finish outstanding tasks, e.g. queued saves before the window closes."""
        pending = [task for task in asyncio.all_tasks(self.loop) if not task.done()]
        if not pending:
            return
        logger.debug("async_pump.draining", tasks=len(pending))
        self.loop.run_until_complete(asyncio.wait(pending, timeout=timeout))

    def close(self) -> None:
        self.stop()
        self.run_until_idle()
        leftover = [task for task in asyncio.all_tasks(self.loop) if not task.done()]
        for task in leftover:
            task.cancel()
        if leftover:
            self.loop.run_until_complete(asyncio.gather(*leftover, return_exceptions=True))
        self.loop.close()

    def _step(self) -> None:
        if self.loop.is_closed() or self.loop.is_running():
            return
        self.loop.call_soon(self.loop.stop)
        self.loop.run_forever()
