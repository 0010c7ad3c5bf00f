"""
Meter profile models for the readings a meter display can show.
Defines the label and unit that locate each reading in recognized text.
"""
from dataclasses import dataclass

from meter_reader.models.recognition import DEFAULT_WHITELIST, SegmentationMode


@dataclass(frozen=True)
class MeterProfile:
    """Profile describing one labeled reading on a meter display."""

    name: str
    label: str  # Text printed before the value (e.g., "FR1")
    unit: str  # Unit printed after the value (e.g., "m3/Hr"); "/" and "\" are interchangeable
    description: str = ""
    character_whitelist: str = DEFAULT_WHITELIST
    segmentation_mode: SegmentationMode = SegmentationMode.SINGLE_WORD


# Default profiles for the readings of a common flow meter
DEFAULT_PROFILES = {
    "fr1": MeterProfile(
        name="fr1",
        label="FR1",
        unit="m3/Hr",
        description="Flow rate",
    ),
    "t1": MeterProfile(
        name="t1",
        label="T1",
        unit="m3",
        description="Totalizer",
        segmentation_mode=SegmentationMode.SINGLE_LINE,
    ),
}


def get_profile(name: str) -> MeterProfile:
    """Get meter profile by name (case-insensitive), falling back to FR1."""
    return DEFAULT_PROFILES.get((name or "").lower(), DEFAULT_PROFILES["fr1"])
