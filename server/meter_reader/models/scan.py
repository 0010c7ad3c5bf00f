from dataclasses import asdict, dataclass
from typing import Optional


@dataclass(frozen=True)
class ScanRecord:
    """An accepted reading. Never modified once created."""

    id: str
    raw: str
    normalized: str
    timestamp: str  # ISO 8601, UTC
    ocr_text: str
    filtered_text: Optional[str] = None
    preview_image: Optional[str] = None  # data URL
    field: str = "fr1"
    confidence: float = 0.0
    manual: bool = False

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ScanRecord":
        known = {name: data[name] for name in cls.__dataclass_fields__ if name in data}
        known["id"] = str(known["id"])
        return cls(**known)


@dataclass(frozen=True)
class ExtractedValue:
    raw: str  # As matched in the text
    normalized: str  # Canonical decimal, e.g. "41.09"
