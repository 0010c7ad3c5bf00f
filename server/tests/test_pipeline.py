import pytest

from conftest import FakeRecognizer
from meter_reader.errors import CaptureCancelled, NoValueFound, QualityRejected
from meter_reader.models import FilterConfig, RecognitionResult, get_profile
from meter_reader.ocr.pipeline import ReadingPipeline


def test_reads_fr1(good_frame, fake_recognizer):
    outcome = ReadingPipeline(fake_recognizer).process(good_frame)
    assert outcome.value.raw == "041.09"
    assert outcome.value.normalized == "41.09"
    assert outcome.profile.name == "fr1"
    assert outcome.strategy == "display-optimized"
    assert outcome.to_dict()["normalized"] == "41.09"


def test_quality_gate_runs_before_recognition(blurry_frame, fake_recognizer):
    with pytest.raises(QualityRejected):
        ReadingPipeline(fake_recognizer).process(blurry_frame)
    assert fake_recognizer.requests == []


def test_falls_back_to_raw_text_when_filter_drops_value(good_frame, fake_recognizer):
    outcome = ReadingPipeline(fake_recognizer).process(
        good_frame, filter_config=FilterConfig(keywords={"t1"})
    )
    assert outcome.filter_result.matched_lines == []
    assert outcome.value.normalized == "41.09"


def test_no_value_keeps_texts(good_frame):
    recognizer = FakeRecognizer([RecognitionResult("123 456", 0.9)])
    with pytest.raises(NoValueFound) as exc_info:
        ReadingPipeline(recognizer).process(good_frame)
    assert exc_info.value.raw_text == "123 456"
    assert exc_info.value.filtered_text == "123 456"


def test_profile_sets_segmentation(good_frame):
    recognizer = FakeRecognizer([RecognitionResult("T1 00123 m3", 0.9)])
    outcome = ReadingPipeline(recognizer).process(good_frame, profile=get_profile("t1"))
    assert outcome.value.normalized == "123"
    assert recognizer.requests[0].segmentation_mode == get_profile("t1").segmentation_mode


def test_progress_is_monotonic(good_frame):
    recognizer = FakeRecognizer([RecognitionResult("x", 0.1), RecognitionResult("FR1 1 m3/Hr", 0.8)])
    values = []
    ReadingPipeline(recognizer).process(good_frame, progress=values.append)
    assert values == sorted(values)
    assert values[0] == 0
    assert values[-1] == 95


def test_cancellation_is_checked_between_stages(good_frame, fake_recognizer):
    with pytest.raises(CaptureCancelled):
        ReadingPipeline(fake_recognizer).process(good_frame, cancelled=lambda: True)
    assert fake_recognizer.requests == []
