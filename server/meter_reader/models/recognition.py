"""
Recognizer request/response models.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from meter_reader.models.frame import PreprocessedImage

# Characters a flow meter display can show (digits, label and unit)
DEFAULT_WHITELIST = "0123456789.:FRTmHr/"


class SegmentationMode(str, Enum):
    SINGLE_WORD = "single_word"
    SINGLE_LINE = "single_line"


@dataclass(frozen=True)
class BoundingBox:
    x0: int
    y0: int
    x1: int
    y1: int

    def union(self, other: "BoundingBox") -> "BoundingBox":
        return BoundingBox(
            x0=min(self.x0, other.x0),
            y0=min(self.y0, other.y0),
            x1=max(self.x1, other.x1),
            y1=max(self.y1, other.y1),
        )

    def contains_point(self, x: float, y: float) -> bool:
        return self.x0 <= x <= self.x1 and self.y0 <= y <= self.y1


@dataclass(frozen=True)
class CharacterBox:
    char: str
    confidence: float
    bbox: BoundingBox


@dataclass
class RecognitionRequest:
    image: PreprocessedImage
    character_whitelist: str = DEFAULT_WHITELIST
    segmentation_mode: SegmentationMode = SegmentationMode.SINGLE_WORD


@dataclass
class RecognitionResult:
    raw_text: str = ""
    confidence: float = 0.0  # 0-1
    characters: List[CharacterBox] = field(default_factory=list)

    def __post_init__(self):
        self.confidence = min(1.0, max(0.0, float(self.confidence)))

    @property
    def reading(self) -> str:
        """Per-character text normalized as a numeric reading ("" if not numeric)."""
        from meter_reader.ocr.normalizer import normalize_reading

        return normalize_reading("".join(c.char for c in self.characters)) or ""

    @property
    def roi(self) -> Optional[BoundingBox]:
        """Union of all character boxes."""
        if not self.characters:
            return None
        box = self.characters[0].bbox
        for char in self.characters[1:]:
            box = box.union(char.bbox)
        return box

    def to_dict(self) -> dict:
        roi = self.roi
        return {
            "raw_text": self.raw_text,
            "confidence": round(self.confidence, 4),
            "reading": self.reading,
            "roi": None if roi is None else roi.__dict__,
            "characters": [
                {"char": c.char, "confidence": round(c.confidence, 4), "bbox": c.bbox.__dict__}
                for c in self.characters
            ],
        }
