import pytest

from conftest import FakeRecognizer
from meter_reader.errors import RecognizerFailure, RecognizerTimeout, RecognizerUnavailable
from meter_reader.models import RecognitionResult, SegmentationMode
from meter_reader.ocr.preprocessing import ImagePreprocessor
from meter_reader.ocr.strategies import default_strategies, run_strategies


@pytest.fixture
def strategies():
    return default_strategies(ImagePreprocessor())


def test_default_strategy_order(strategies):
    assert [s.name for s in strategies] == ["display-optimized", "high-contrast", "unmodified", "inverted"]


def test_stops_at_first_confident_result(good_frame, strategies):
    recognizer = FakeRecognizer([RecognitionResult("FR1 1 m3/Hr", 0.95)])
    outcome = run_strategies(good_frame, recognizer, strategies)
    assert outcome.attempts == 1
    assert outcome.strategy == "display-optimized"
    assert len(recognizer.requests) == 1


def test_threshold_must_be_exceeded(good_frame, strategies):
    recognizer = FakeRecognizer([RecognitionResult("a", 0.70)])
    outcome = run_strategies(good_frame, recognizer, strategies, acceptance_threshold=0.70)
    assert outcome.attempts == len(strategies)


def test_keeps_most_confident_result(good_frame, strategies):
    recognizer = FakeRecognizer([
        RecognitionResult("a", 0.2),
        RecognitionResult("b", 0.6),
        RecognitionResult("c", 0.4),
        RecognitionResult("d", 0.1),
    ])
    outcome = run_strategies(good_frame, recognizer, strategies)
    assert len(recognizer.requests) == 4
    assert outcome.result.raw_text == "b"
    assert outcome.strategy == "high-contrast"


def test_failures_and_timeouts_are_skipped(good_frame, strategies):
    recognizer = FakeRecognizer([
        RecognizerTimeout("slow"),
        RecognizerFailure("bad"),
        RecognitionResult("FR1 2 m3/Hr", 0.9),
    ])
    outcome = run_strategies(good_frame, recognizer, strategies)
    assert outcome.attempts == 3
    assert outcome.strategy == "unmodified"


def test_all_failures_yield_empty_result(good_frame, strategies, failing_recognizer):
    outcome = run_strategies(good_frame, failing_recognizer, strategies)
    assert outcome.strategy is None
    assert outcome.result.confidence == 0
    assert outcome.attempts == len(strategies)


def test_unavailable_recognizer_propagates(good_frame, strategies):
    with pytest.raises(RecognizerUnavailable):
        run_strategies(good_frame, FakeRecognizer([RecognizerUnavailable("gone")]), strategies)


def test_request_carries_whitelist_and_mode(good_frame, strategies, fake_recognizer):
    run_strategies(
        good_frame,
        fake_recognizer,
        strategies,
        character_whitelist="0123456789.",
        segmentation_mode=SegmentationMode.SINGLE_LINE,
    )
    request = fake_recognizer.requests[0]
    assert request.character_whitelist == "0123456789."
    assert request.segmentation_mode == SegmentationMode.SINGLE_LINE


def test_attempt_callback(good_frame, strategies):
    calls = []
    recognizer = FakeRecognizer([RecognitionResult("x", 0.1), RecognitionResult("y", 0.9)])
    run_strategies(good_frame, recognizer, strategies, on_attempt=lambda n, total: calls.append((n, total)))
    assert calls == [(1, 4), (2, 4)]
