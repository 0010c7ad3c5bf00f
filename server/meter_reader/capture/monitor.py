"""
Live feed helpers: the latest-frame buffer and the periodic quality monitor.
"""
import asyncio
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from meter_reader import config
from meter_reader.errors import AlreadyProcessing
from meter_reader.models.frame import Frame
from meter_reader.models.quality import QualityScore
from meter_reader.ocr.quality import assess_quality

logger = logging.getLogger(__name__)


class FrameBuffer:
    """Holds the most recent live frame. Readers never modify it."""

    def __init__(self):
        self._frame: Optional[Frame] = None
        self._sequence = 0
        self._lock = threading.Lock()

    def publish(self, frame: Frame) -> int:
        with self._lock:
            self._frame = frame
            self._sequence += 1
            return self._sequence

    def latest(self) -> Optional[Frame]:
        with self._lock:
            return self._frame

    def snapshot(self):
        """(sequence, frame) read atomically."""
        with self._lock:
            return self._sequence, self._frame


@dataclass(frozen=True)
class MonitorSnapshot:
    quality: Optional[QualityScore] = None
    sampled_at: Optional[str] = None
    frame_sequence: int = 0
    triggered: bool = False

    def to_dict(self) -> dict:
        return {
            "quality": None if self.quality is None else self.quality.to_dict(),
            "sampled_at": self.sampled_at,
            "frame_sequence": self.frame_sequence,
            "triggered": self.triggered,
        }


class QualityMonitor:
    """
    Re-samples the latest frame on a fixed interval to drive a live quality
    indicator and, when enabled, an auto-capture trigger.
    """

    def __init__(
        self,
        buffer: FrameBuffer,
        interval: float = config.MONITOR_INTERVAL,
        auto_capture_score: float = config.AUTO_CAPTURE_SCORE,
        on_auto_capture: Optional[Callable[[Frame], object]] = None,
    ):
        self.buffer = buffer
        self.interval = interval
        self.auto_capture_score = auto_capture_score
        self.on_auto_capture = on_auto_capture
        self.auto_capture = False
        self.snapshot = MonitorSnapshot()
        self._last_triggered_sequence = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        logger.info(f"Starting quality monitor (every {self.interval:.2f}s)")
        self._task = asyncio.get_running_loop().create_task(self._loop())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Quality monitor stopped")

    async def tick(self) -> MonitorSnapshot:
        """Assess the latest frame once and fire auto-capture if warranted."""
        sequence, frame = self.buffer.snapshot()
        if frame is None:
            return self.snapshot

        quality = await asyncio.to_thread(assess_quality, frame)
        triggered = False
        if (
            self.auto_capture
            and self.on_auto_capture is not None
            and quality.score > self.auto_capture_score
            and sequence != self._last_triggered_sequence
        ):
            try:
                self.on_auto_capture(frame)
                triggered = True
                self._last_triggered_sequence = sequence
                logger.info(f"Auto-capture triggered (score {quality.score})")
            except AlreadyProcessing:
                logger.debug("Auto-capture skipped, capture already in flight")

        self.snapshot = MonitorSnapshot(
            quality=quality,
            sampled_at=datetime.now(timezone.utc).isoformat(),
            frame_sequence=sequence,
            triggered=triggered,
        )
        return self.snapshot

    async def _loop(self) -> None:
        while True:
            try:
                await self.tick()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Quality monitor tick failed: {e}", exc_info=True)
            await asyncio.sleep(self.interval)
