"""
Text recognizer adapters.
Tesseract (default) and EasyOCR behind one request/response contract.
Recognizers are created and owned by the caller, initialized lazily on the
first request and released with terminate().
"""
import logging
import os
import shutil
import threading
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

import pytesseract

from meter_reader import config
from meter_reader.errors import (
    RecognizerFailure,
    RecognizerTimeout,
    RecognizerUnavailable,
)
from meter_reader.models.recognition import (
    BoundingBox,
    CharacterBox,
    RecognitionRequest,
    RecognitionResult,
    SegmentationMode,
)

logger = logging.getLogger(__name__)


class TextRecognizer(ABC):
    """Base class handling the initialize/recognize/terminate lifecycle."""

    name = "recognizer"

    def __init__(self):
        self._initialized = False
        self._lock = threading.Lock()

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        """Load the engine. Safe to call more than once."""
        with self._lock:
            if self._initialized:
                return
            logger.info(f"Initializing {self.name} recognizer...")
            self._initialize()
            self._initialized = True
            logger.info(f"{self.name} recognizer initialized")

    def terminate(self) -> None:
        with self._lock:
            if not self._initialized:
                return
            self._terminate()
            self._initialized = False
            logger.info(f"{self.name} recognizer terminated")

    def recognize(self, request: RecognitionRequest) -> RecognitionResult:
        self.initialize()
        return self._recognize(request)

    def __enter__(self):
        self.initialize()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.terminate()

    @abstractmethod
    def _initialize(self) -> None:
        ...

    @abstractmethod
    def _recognize(self, request: RecognitionRequest) -> RecognitionResult:
        ...

    def _terminate(self) -> None:
        pass


class TesseractRecognizer(TextRecognizer):
    """Recognizer backed by the Tesseract CLI through pytesseract."""

    name = "tesseract"

    PSM_MODES = {
        SegmentationMode.SINGLE_WORD: "8",
        SegmentationMode.SINGLE_LINE: "7",
    }

    def __init__(self, tesseract_cmd: Optional[str] = None, timeout: float = config.RECOGNIZER_TIMEOUT):
        super().__init__()
        self.tesseract_cmd = tesseract_cmd
        self.timeout = timeout

    def _initialize(self) -> None:
        tesseract_path = self.tesseract_cmd or shutil.which("tesseract")
        if not tesseract_path:
            raise RecognizerUnavailable("Tesseract not found in PATH")
        pytesseract.pytesseract.tesseract_cmd = tesseract_path
        try:
            version = pytesseract.get_tesseract_version()
        except pytesseract.TesseractNotFoundError as e:
            raise RecognizerUnavailable(f"Tesseract is not runnable: {e}") from e
        logger.info(f"Tesseract {version} found at: {tesseract_path}")

    def _build_config(self, request: RecognitionRequest) -> str:
        psm_mode = self.PSM_MODES[request.segmentation_mode]
        config_str = f"--oem 1 --psm {psm_mode}"
        if request.character_whitelist:
            config_str += f" -c tessedit_char_whitelist={request.character_whitelist}"
        return config_str

    def _recognize(self, request: RecognitionRequest) -> RecognitionResult:
        image = request.image.to_pil()
        tess_config = self._build_config(request)
        try:
            raw_text = pytesseract.image_to_string(image, config=tess_config, timeout=self.timeout)
            ocr_data = pytesseract.image_to_data(
                image, config=tess_config, output_type=pytesseract.Output.DICT, timeout=self.timeout
            )
            char_boxes = pytesseract.image_to_boxes(image, config=tess_config, timeout=self.timeout)
        except pytesseract.TesseractNotFoundError as e:
            raise RecognizerUnavailable(str(e)) from e
        except pytesseract.TesseractError as e:
            raise RecognizerFailure(f"Tesseract failed: {e}") from e
        except RuntimeError as e:
            # pytesseract signals a killed process with a plain RuntimeError
            if "timeout" in str(e).lower():
                raise RecognizerTimeout(f"Tesseract timed out after {self.timeout}s") from e
            raise RecognizerFailure(f"Tesseract failed: {e}") from e

        words = self._parse_words(ocr_data)
        confidence = sum(conf for _, conf in words) / len(words) if words else 0.0
        characters = self._parse_characters(char_boxes, request.image.height, words, confidence)

        logger.info(f"Tesseract recognized '{raw_text.strip()}' (confidence: {confidence:.2f})")
        return RecognitionResult(raw_text=raw_text.strip(), confidence=confidence, characters=characters)

    @staticmethod
    def _parse_words(ocr_data: dict) -> List[Tuple[BoundingBox, float]]:
        """Word boxes with confidence scaled to 0-1; Tesseract reports -1 for non-words."""
        words = []
        for i, text in enumerate(ocr_data["text"]):
            try:
                conf = float(ocr_data["conf"][i])
            except (TypeError, ValueError):
                continue
            if not str(text).strip() or conf < 0:
                continue
            left, top = int(ocr_data["left"][i]), int(ocr_data["top"][i])
            box = BoundingBox(left, top, left + int(ocr_data["width"][i]), top + int(ocr_data["height"][i]))
            words.append((box, conf / 100.0))
        return words

    @staticmethod
    def _parse_characters(
        char_boxes: str,
        image_height: int,
        words: List[Tuple[BoundingBox, float]],
        default_confidence: float,
    ) -> List[CharacterBox]:
        """
        Parse image_to_boxes output ("c x0 y0 x1 y1 page", bottom-left origin).
        Each character takes the confidence of the word containing its center.
        """
        characters = []
        for line in char_boxes.splitlines():
            parts = line.split()
            if len(parts) < 5:
                continue
            char = parts[0]
            x0, y0, x1, y1 = (int(v) for v in parts[1:5])
            bbox = BoundingBox(x0, image_height - y1, x1, image_height - y0)
            center_x, center_y = (bbox.x0 + bbox.x1) / 2, (bbox.y0 + bbox.y1) / 2
            confidence = next(
                (conf for box, conf in words if box.contains_point(center_x, center_y)),
                default_confidence,
            )
            characters.append(CharacterBox(char=char, confidence=confidence, bbox=bbox))
        return characters


class EasyOCRRecognizer(TextRecognizer):
    """Recognizer backed by EasyOCR. The model is loaded on initialize()."""

    name = "easyocr"

    def __init__(self, languages: Tuple[str, ...] = ("en",), gpu: bool = config.USE_GPU):
        super().__init__()
        self.languages = languages
        self.gpu = gpu
        self._reader = None

    def _initialize(self) -> None:
        try:
            import certifi
            import easyocr

            # Model download needs a CA bundle on some macOS installs
            os.environ.setdefault("SSL_CERT_FILE", certifi.where())
            os.environ.setdefault("REQUESTS_CA_BUNDLE", certifi.where())
            self._reader = easyocr.Reader(list(self.languages), gpu=self.gpu, verbose=False)
        except Exception as e:
            raise RecognizerUnavailable(f"Failed to initialize EasyOCR: {e}") from e

    def _terminate(self) -> None:
        self._reader = None

    def _recognize(self, request: RecognitionRequest) -> RecognitionResult:
        try:
            results = self._reader.readtext(
                request.image.pixels,
                allowlist=request.character_whitelist or None,
                detail=1,
                paragraph=False,
            )
        except Exception as e:
            raise RecognizerFailure(f"EasyOCR failed: {e}") from e

        if not results:
            logger.info("EasyOCR found no text")
            return RecognitionResult()

        # Read detections left to right
        results = sorted(results, key=lambda r: min(p[0] for p in r[0]))
        characters: List[CharacterBox] = []
        texts = []
        confidences = []
        for bbox, text, conf in results:
            text = str(text).strip()
            if not text:
                continue
            texts.append(text)
            confidences.append(float(conf))
            characters.extend(self._split_detection(bbox, text, float(conf)))

        separator = "" if request.segmentation_mode == SegmentationMode.SINGLE_WORD else " "
        raw_text = separator.join(texts)
        confidence = sum(confidences) / len(confidences) if confidences else 0.0
        logger.info(f"EasyOCR recognized '{raw_text}' (confidence: {confidence:.2f})")
        return RecognitionResult(raw_text=raw_text, confidence=confidence, characters=characters)

    @staticmethod
    def _split_detection(points, text: str, confidence: float) -> List[CharacterBox]:
        """Split a detection box evenly across its characters."""
        xs = [int(p[0]) for p in points]
        ys = [int(p[1]) for p in points]
        x0, x1, y0, y1 = min(xs), max(xs), min(ys), max(ys)
        step = (x1 - x0) / len(text)
        return [
            CharacterBox(
                char=char,
                confidence=confidence,
                bbox=BoundingBox(int(x0 + i * step), y0, int(x0 + (i + 1) * step), y1),
            )
            for i, char in enumerate(text)
        ]


def create_recognizer(engine: str = config.RECOGNIZER_ENGINE) -> TextRecognizer:
    """Create (but do not initialize) the configured recognizer."""
    engine = (engine or "tesseract").lower()
    if engine == "easyocr":
        return EasyOCRRecognizer()
    if engine != "tesseract":
        logger.warning(f"Unknown recognizer engine '{engine}', using tesseract")
    return TesseractRecognizer(tesseract_cmd=config.TESSERACT_CMD)
