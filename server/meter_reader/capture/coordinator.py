"""
Single-flight capture coordinator.
Runs the reading pipeline on a worker thread, reports progress, supports
cancellation and commits a scan record only when a capture fully succeeds.
"""
import asyncio
import base64
import logging
import threading
from dataclasses import dataclass
from typing import Optional

from meter_reader.errors import AlreadyProcessing, CaptureCancelled
from meter_reader.models.filters import FilterConfig
from meter_reader.models.frame import Frame
from meter_reader.models.meter_profile import MeterProfile
from meter_reader.models.scan import ScanRecord
from meter_reader.ocr.pipeline import ReadingOutcome, ReadingPipeline
from meter_reader.store.scan_store import ScanStore

logger = logging.getLogger(__name__)


class ProgressTracker:
    """Progress in 0-100 that never goes backwards."""

    def __init__(self):
        self._value = 0
        self._lock = threading.Lock()

    @property
    def value(self) -> int:
        return self._value

    def update(self, value: int) -> None:
        value = max(0, min(100, int(value)))
        with self._lock:
            if value > self._value:
                self._value = value


@dataclass
class CaptureResult:
    outcome: ReadingOutcome
    record: ScanRecord

    def to_dict(self) -> dict:
        return {"record": self.record.to_dict(), **self.outcome.to_dict()}


class CaptureCoordinator:
    """Allows one capture in flight; a second request is rejected, not queued."""

    def __init__(self, pipeline: ReadingPipeline, store: ScanStore, include_preview: bool = True):
        self.pipeline = pipeline
        self.store = store
        self.include_preview = include_preview
        self.progress = ProgressTracker()
        self.last_error: Optional[str] = None
        self._task: Optional[asyncio.Task] = None
        self._worker: Optional[asyncio.Future] = None
        self._cancel_event = threading.Event()
        self._committed = threading.Event()
        self._commit_lock = threading.Lock()

    @property
    def is_processing(self) -> bool:
        # A cancelled capture stays busy until its worker thread has returned
        if self._worker is not None and not self._worker.done():
            return True
        return self._task is not None and not self._task.done()

    def start(
        self,
        frame: Frame,
        profile: Optional[MeterProfile] = None,
        filter_config: Optional[FilterConfig] = None,
    ) -> "asyncio.Task":
        """
        Start a capture in the background and return its task.

        Raises:
            AlreadyProcessing: another capture is still running
        """
        if self.is_processing:
            raise AlreadyProcessing("A capture is already being processed")

        self._cancel_event = threading.Event()
        self._committed = threading.Event()
        self._worker = None
        self.progress = ProgressTracker()
        self.last_error = None
        task = asyncio.get_running_loop().create_task(
            self._run(frame, profile, filter_config, self._cancel_event, self._committed, self.progress)
        )
        task.add_done_callback(self._on_done)
        self._task = task
        return task

    async def capture(
        self,
        frame: Frame,
        profile: Optional[MeterProfile] = None,
        filter_config: Optional[FilterConfig] = None,
    ) -> CaptureResult:
        """Run a capture and wait for its result."""
        task = self.start(frame, profile, filter_config)
        cancel_event = self._cancel_event
        try:
            return await task
        except asyncio.CancelledError:
            if cancel_event.is_set():
                raise CaptureCancelled("Capture was cancelled")
            raise

    def cancel(self) -> bool:
        """
        Abandon the in-flight capture.

        Returns False if nothing was running or the result was already saved.
        The coordinator stays busy until the worker thread notices the flag.
        """
        if not self.is_processing:
            return False
        with self._commit_lock:
            if self._committed.is_set():
                return False
            self._cancel_event.set()
        logger.info("Cancelling in-flight capture")
        self._task.cancel()
        return True

    async def _run(
        self,
        frame: Frame,
        profile: Optional[MeterProfile],
        filter_config: Optional[FilterConfig],
        cancel_event: threading.Event,
        committed: threading.Event,
        progress: ProgressTracker,
    ) -> CaptureResult:
        worker = asyncio.ensure_future(asyncio.to_thread(
            self._process, frame, profile, filter_config, cancel_event, committed, progress
        ))
        worker.add_done_callback(_discard_worker_result)
        self._worker = worker
        # Cancelling the task must not cancel the worker, the thread cannot be interrupted
        return await asyncio.shield(worker)

    def _process(self, frame, profile, filter_config, cancel_event, committed, progress) -> CaptureResult:
        outcome = self.pipeline.process(
            frame,
            profile=profile,
            filter_config=filter_config,
            progress=progress.update,
            cancelled=cancel_event.is_set,
        )
        preview = None
        if self.include_preview:
            encoded = base64.b64encode(frame.to_jpeg()).decode("ascii")
            preview = f"data:image/jpeg;base64,{encoded}"

        with self._commit_lock:
            if cancel_event.is_set():
                raise CaptureCancelled("Capture was cancelled")
            record = self.store.add(
                raw=outcome.value.raw,
                normalized=outcome.value.normalized,
                ocr_text=outcome.recognition.raw_text,
                filtered_text=outcome.filter_result.filtered_text,
                preview_image=preview,
                field=outcome.profile.name,
                confidence=outcome.recognition.confidence,
            )
            committed.set()
        progress.update(100)
        return CaptureResult(outcome=outcome, record=record)

    def _on_done(self, task: "asyncio.Task") -> None:
        if task.cancelled():
            self.last_error = "cancelled"
            logger.info("Capture cancelled")
            return
        error = task.exception()
        if error is not None:
            self.last_error = str(error)
            logger.warning(f"Capture failed: {type(error).__name__}: {error}")


def _discard_worker_result(worker: "asyncio.Future") -> None:
    # The task reports errors; a worker outliving a cancelled task has no reader
    if not worker.cancelled():
        worker.exception()
