"""Data models package."""

from .filters import FilterConfig, FilterResult, LineFilters, RejectedLine
from .frame import Frame, PreprocessedImage
from .meter_profile import DEFAULT_PROFILES, MeterProfile, get_profile
from .quality import QualityScore
from .recognition import (
    DEFAULT_WHITELIST,
    BoundingBox,
    CharacterBox,
    RecognitionRequest,
    RecognitionResult,
    SegmentationMode,
)
from .scan import ExtractedValue, ScanRecord

__all__ = [
    "BoundingBox",
    "CharacterBox",
    "DEFAULT_PROFILES",
    "DEFAULT_WHITELIST",
    "ExtractedValue",
    "FilterConfig",
    "FilterResult",
    "Frame",
    "LineFilters",
    "MeterProfile",
    "PreprocessedImage",
    "QualityScore",
    "RecognitionRequest",
    "RecognitionResult",
    "RejectedLine",
    "ScanRecord",
    "SegmentationMode",
    "get_profile",
]
