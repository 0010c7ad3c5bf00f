"""OCR processing module for flow meter reading recognition."""
from .normalizer import extract_first, extract_reading, extract_value, normalize_reading
from .pipeline import ReadingOutcome, ReadingPipeline
from .preprocessing import ImagePreprocessor, PreprocessConfig
from .quality import assess_quality, check_quality
from .recognizer import EasyOCRRecognizer, TesseractRecognizer, TextRecognizer, create_recognizer
from .text_filter import filter_text

__all__ = [
    "EasyOCRRecognizer",
    "ImagePreprocessor",
    "PreprocessConfig",
    "ReadingOutcome",
    "ReadingPipeline",
    "TesseractRecognizer",
    "TextRecognizer",
    "assess_quality",
    "check_quality",
    "create_recognizer",
    "extract_first",
    "extract_reading",
    "extract_value",
    "filter_text",
    "normalize_reading",
]
