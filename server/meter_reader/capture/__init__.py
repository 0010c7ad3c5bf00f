"""Live capture: single-flight recognition and quality monitoring."""
from .coordinator import CaptureCoordinator, CaptureResult, ProgressTracker
from .monitor import FrameBuffer, MonitorSnapshot, QualityMonitor

__all__ = [
    "CaptureCoordinator",
    "CaptureResult",
    "FrameBuffer",
    "MonitorSnapshot",
    "ProgressTracker",
    "QualityMonitor",
]
