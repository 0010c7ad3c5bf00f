import threading
from typing import List, Optional

import numpy as np
import pytest

from meter_reader.errors import RecognizerFailure
from meter_reader.models import Frame, RecognitionRequest, RecognitionResult
from meter_reader.ocr.recognizer import TextRecognizer
from meter_reader.store import MemoryScanStore


class FakeRecognizer(TextRecognizer):
    """Returns canned results in order; the last one repeats."""

    name = "fake"

    def __init__(self, results: Optional[List] = None, gate: Optional[threading.Event] = None):
        super().__init__()
        self.results = list(results or [RecognitionResult("FR1 041.09 m3/Hr", 0.9)])
        self.gate = gate
        self.requests: List[RecognitionRequest] = []
        self.terminated = False

    def _initialize(self) -> None:
        pass

    def _terminate(self) -> None:
        self.terminated = True

    def _recognize(self, request: RecognitionRequest) -> RecognitionResult:
        if self.gate is not None:
            self.gate.wait(timeout=5)
        self.requests.append(request)
        index = min(len(self.requests), len(self.results)) - 1
        result = self.results[index]
        if isinstance(result, Exception):
            raise result
        return result


def striped_pixels(height: int = 60, width: int = 120, low: int = 60, high: int = 200) -> np.ndarray:
    """Gray RGB frame with 2px vertical stripes: mid brightness, sharp, no glare."""
    row = np.where((np.arange(width) // 2) % 2 == 0, low, high).astype(np.uint8)
    gray = np.tile(row, (height, 1))
    return np.stack([gray, gray, gray], axis=-1)


@pytest.fixture
def good_frame() -> Frame:
    return Frame(striped_pixels())


@pytest.fixture
def dark_frame() -> Frame:
    return Frame(striped_pixels(low=0, high=80))


@pytest.fixture
def blurry_frame() -> Frame:
    return Frame(np.full((60, 120, 3), 128, dtype=np.uint8))


@pytest.fixture
def fake_recognizer() -> FakeRecognizer:
    return FakeRecognizer()


@pytest.fixture
def failing_recognizer() -> FakeRecognizer:
    return FakeRecognizer([RecognizerFailure("boom")])


@pytest.fixture
def memory_store() -> MemoryScanStore:
    return MemoryScanStore()
