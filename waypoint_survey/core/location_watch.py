"""Live-location watch - cancellable subscription to position fixes.

A position source is any async iterable of PositionFix. The watch consumes it
in an asyncio task and forwards fixes to a callback, at most one per
LocationConfig.MIN_UPDATE_INTERVAL_S. Without a source the watch is fed by
calling handle() directly (the Streamlit shell reports fixes per rerun).

Cancellation contract:
- stop() marks the watch cancelled before cancelling the task
- handle() checks the mark first, so a fix delivered after stop() is a no-op
- a fix the callback rejects with a WaypointSurveyError is logged and skipped,
  so one bad reading never kills the task
"""

import asyncio
import contextlib
import logging
import time
from collections.abc import AsyncIterable, Callable
from dataclasses import dataclass

from waypoint_survey.constants import LocationConfig
from waypoint_survey.errors import WaypointSurveyError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PositionFix:
    """One reading from the device's location service.

    Attributes:
        lat, lon: WGS84 decimal degrees
        accuracy_m: Reported horizontal accuracy, None if unknown
        timestamp: Monotonic seconds; None means "now" when handled
    """

    lat: float
    lon: float
    accuracy_m: float | None = None
    timestamp: float | None = None

    @property
    def is_low_accuracy(self) -> bool:
        return self.accuracy_m is not None and self.accuracy_m > LocationConfig.LOW_ACCURACY_THRESHOLD_M

    @property
    def accuracy_label(self) -> str:
        """Notes text for a tracked waypoint, e.g. "Accuracy: 12m"."""
        accuracy = f"{round(self.accuracy_m)}m" if self.accuracy_m is not None else "N/A"
        return LocationConfig.ACCURACY_NOTES_TEMPLATE.format(accuracy=accuracy)


class LocationWatch:
    """Forwards position fixes to a callback until stopped.

    Example:
        watch = LocationWatch(source=gps_fixes(), on_fix=apply_fix)
        watch.start()
        ...
        await watch.stop()
    """

    def __init__(
        self,
        source: AsyncIterable[PositionFix] | None,
        on_fix: Callable[[PositionFix], None],
        min_interval_s: float = LocationConfig.MIN_UPDATE_INTERVAL_S,
        clock: Callable[[], float] = time.monotonic,
        on_error: Callable[[WaypointSurveyError], None] | None = None,
    ) -> None:
        self.source = source
        self.on_fix = on_fix
        self.on_error = on_error
        self.min_interval_s = min_interval_s
        self.clock = clock

        self._task: asyncio.Task | None = None
        self._started = False
        self._cancelled = False
        self._last_applied: float | None = None
        self.applied_count = 0

    @property
    def is_active(self) -> bool:
        return self._started and not self._cancelled

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def start(self) -> None:
        """Start the watch. With a source, must be called from a running event loop."""
        if self._cancelled:
            raise RuntimeError("A stopped LocationWatch cannot be restarted")
        if self._started:
            return
        self._started = True
        if self.source is not None:
            self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info("[WATCH] Started live-location watch")

    async def stop(self) -> None:
        """Stop the watch. Idempotent; no fix is applied afterwards."""
        if self._cancelled:
            return
        self._cancelled = True
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        logger.info(f"[WATCH] Stopped live-location watch after {self.applied_count} update(s)")

    def handle(self, fix: PositionFix) -> bool:
        """Apply one fix if the watch is live and the rate limit allows.

        Returns:
            True if the callback accepted the fix.
        """
        if self._cancelled or not self._started:
            return False

        now = fix.timestamp if fix.timestamp is not None else self.clock()
        if self._last_applied is not None and now - self._last_applied < self.min_interval_s:
            return False

        try:
            self.on_fix(fix)
        except WaypointSurveyError as e:
            logger.warning(f"[WATCH] Rejected fix ({fix.lat}, {fix.lon}): {e.message}")
            if self.on_error is not None:
                self.on_error(e)
            return False

        self._last_applied = now
        self.applied_count += 1
        return True

    async def _run(self) -> None:
        async for fix in self.source:
            if self._cancelled:
                break
            self.handle(fix)
        logger.info("[WATCH] Position source exhausted")
