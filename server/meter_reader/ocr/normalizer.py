"""
Reading extraction and normalization.
Finds a labeled value (e.g. "FR1: 041.09 m3/Hr") in recognized text and
normalizes it to a canonical decimal string.
"""
import re
import logging
from typing import Iterable, Optional

from meter_reader.models.meter_profile import MeterProfile
from meter_reader.models.scan import ExtractedValue

logger = logging.getLogger(__name__)

NUMERIC_TOKEN = r"([0-9]+(?:\.[0-9]+)?)"
CANONICAL_READING = re.compile(r"^\d+(\.\d+)?$")


def _unit_pattern(unit: str) -> str:
    """Regex for a unit where any slash or backslash is optional and interchangeable."""
    return "".join(r"[/\\]?" if ch in "/\\" else re.escape(ch) for ch in unit)


def build_pattern(label: str, unit: str) -> "re.Pattern":
    return re.compile(
        rf"{re.escape(label)}[:\s]*{NUMERIC_TOKEN}[^\d]*{_unit_pattern(unit)}",
        re.IGNORECASE,
    )


def normalize_reading(raw: str) -> Optional[str]:
    """
    Normalize a numeric token to a canonical decimal string.

    Args:
        raw: Numeric text as recognized (may contain OCR noise)

    Returns:
        Canonical reading (e.g., "41.09" for "041.09") or None if not numeric
    """
    if not raw:
        return None

    # 1. Collapse repeated decimal points, keeping the first
    first_decimal = raw.find(".")
    if first_decimal != -1:
        raw = raw[:first_decimal + 1] + raw[first_decimal + 1:].replace(".", "")

    # 2. Drop everything that is not a digit or the decimal point
    s = re.sub(r"[^0-9.]", "", raw)
    if not CANONICAL_READING.match(s):
        return None

    # 3. Strip superfluous leading zeros, keep the fractional digits as given
    integer, _, fraction = s.partition(".")
    integer = integer.lstrip("0") or "0"
    return f"{integer}.{fraction}" if fraction else integer


def extract_value(text: str, label: str = "FR1", unit: str = "m3/Hr") -> Optional[ExtractedValue]:
    """
    Extract the first `<label> <number> <unit>` reading from text.

    Returns:
        ExtractedValue or None when the label/unit pattern is absent
    """
    if not text:
        return None

    match = build_pattern(label, unit).search(text)
    if not match:
        logger.info(f"No {label} reading found in text: {text[:50]!r}")
        return None

    raw = match.group(1)
    normalized = normalize_reading(raw)
    if normalized is None:
        logger.warning(f"Matched {label} value is not numeric: {raw!r}")
        return None

    logger.info(f"Extracted {label} reading: {raw} -> {normalized}")
    return ExtractedValue(raw=raw, normalized=normalized)


def extract_reading(text: str, profile: MeterProfile) -> Optional[ExtractedValue]:
    return extract_value(text, label=profile.label, unit=profile.unit)


def extract_first(texts: Iterable[Optional[str]], profile: MeterProfile) -> Optional[ExtractedValue]:
    """Try each text source in order (e.g. filtered text, then raw text)."""
    for text in texts:
        value = extract_reading(text or "", profile)
        if value is not None:
            return value
    return None
