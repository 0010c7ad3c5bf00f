import numpy as np
import pytest
import pytesseract

from conftest import FakeRecognizer
from meter_reader.errors import RecognizerFailure, RecognizerTimeout, RecognizerUnavailable
from meter_reader.models import BoundingBox, PreprocessedImage, RecognitionRequest, SegmentationMode
from meter_reader.ocr.recognizer import (
    EasyOCRRecognizer,
    TesseractRecognizer,
    create_recognizer,
)


def make_request(mode=SegmentationMode.SINGLE_WORD, whitelist="0123456789."):
    image = PreprocessedImage(np.zeros((20, 60), dtype=np.uint8))
    return RecognitionRequest(image=image, character_whitelist=whitelist, segmentation_mode=mode)


@pytest.fixture
def tesseract(monkeypatch):
    recognizer = TesseractRecognizer(tesseract_cmd="/usr/bin/tesseract")
    monkeypatch.setattr(pytesseract, "get_tesseract_version", lambda: "5.3.0")
    return recognizer


def test_build_config_maps_segmentation_mode(tesseract):
    assert tesseract._build_config(make_request()) == (
        "--oem 1 --psm 8 -c tessedit_char_whitelist=0123456789."
    )
    assert "--psm 7" in tesseract._build_config(make_request(SegmentationMode.SINGLE_LINE))
    assert "whitelist" not in tesseract._build_config(make_request(whitelist=""))


def test_parse_words_skips_non_words():
    data = {
        "text": ["", "41.09", "m3"],
        "conf": ["-1", "87", "60.5"],
        "left": [0, 2, 30],
        "top": [0, 3, 3],
        "width": [60, 20, 10],
        "height": [20, 10, 10],
    }
    words = TesseractRecognizer._parse_words(data)
    assert [box for box, _ in words] == [BoundingBox(2, 3, 22, 13), BoundingBox(30, 3, 40, 13)]
    assert [conf for _, conf in words] == pytest.approx([0.87, 0.605])


def test_parse_characters_flips_origin_and_takes_word_confidence():
    words = [(BoundingBox(0, 0, 10, 20), 0.9)]
    boxes = "4 1 2 5 18 0\n1 40 2 45 18 0\nbad line"
    chars = TesseractRecognizer._parse_characters(boxes, 20, words, 0.5)
    assert [c.char for c in chars] == ["4", "1"]
    assert chars[0].bbox == BoundingBox(1, 2, 5, 18)
    assert chars[0].confidence == 0.9
    assert chars[1].confidence == 0.5


def test_tesseract_recognize(monkeypatch, tesseract):
    monkeypatch.setattr(pytesseract, "image_to_string", lambda *a, **k: " 041.09\n")
    monkeypatch.setattr(pytesseract, "image_to_data", lambda *a, **k: {
        "text": ["041.09"], "conf": ["80"], "left": [0], "top": [0], "width": [60], "height": [20],
    })
    monkeypatch.setattr(pytesseract, "image_to_boxes", lambda *a, **k: "0 0 0 10 20 0\n4 10 0 20 20 0")
    result = tesseract.recognize(make_request())
    assert tesseract.is_initialized
    assert result.raw_text == "041.09"
    assert result.confidence == pytest.approx(0.8)
    assert len(result.characters) == 2


@pytest.mark.parametrize(
    "error, expected",
    [
        (pytesseract.TesseractNotFoundError(), RecognizerUnavailable),
        (pytesseract.TesseractError(1, "bad"), RecognizerFailure),
        (RuntimeError("Tesseract process timeout"), RecognizerTimeout),
    ],
)
def test_tesseract_errors_are_mapped(monkeypatch, tesseract, error, expected):
    def fail(*args, **kwargs):
        raise error

    monkeypatch.setattr(pytesseract, "image_to_string", fail)
    with pytest.raises(expected):
        tesseract.recognize(make_request())


def test_missing_tesseract_is_unavailable(monkeypatch):
    monkeypatch.setattr("shutil.which", lambda name: None)
    with pytest.raises(RecognizerUnavailable):
        TesseractRecognizer().initialize()


def test_easyocr_split_detection():
    points = [[0, 0], [30, 0], [30, 10], [0, 10]]
    chars = EasyOCRRecognizer._split_detection(points, "123", 0.7)
    assert [c.bbox.x0 for c in chars] == [0, 10, 20]
    assert all(c.confidence == 0.7 for c in chars)


def test_easyocr_joins_detections_left_to_right():
    class Reader:
        def readtext(self, image, **kwargs):
            return [
                ([[40, 0], [60, 0], [60, 10], [40, 10]], "09", 0.8),
                ([[0, 0], [30, 0], [30, 10], [0, 10]], "041.", 0.6),
            ]

    recognizer = EasyOCRRecognizer()
    recognizer._reader = Reader()
    recognizer._initialized = True
    result = recognizer.recognize(make_request())
    assert result.raw_text == "041.09"
    assert result.confidence == pytest.approx(0.7)
    assert result.reading == "41.09"


def test_lifecycle_context_manager():
    recognizer = FakeRecognizer()
    with recognizer as r:
        assert r.is_initialized
    assert recognizer.terminated
    assert not recognizer.is_initialized


def test_create_recognizer():
    assert isinstance(create_recognizer("easyocr"), EasyOCRRecognizer)
    assert isinstance(create_recognizer("unknown"), TesseractRecognizer)
    assert not create_recognizer("tesseract").is_initialized
