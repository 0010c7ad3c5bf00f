"""
Frame quality assessment.
Scores brightness, sharpness and glare of a frame and gates whether
recognition should proceed.
"""
import logging
from dataclasses import dataclass

import numpy as np

from meter_reader import config
from meter_reader.errors import QualityRejected
from meter_reader.models.frame import Frame
from meter_reader.models.quality import QualityScore

logger = logging.getLogger(__name__)

LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114])
GLARE_LUMA = 240  # ~0.94 of max intensity


@dataclass(frozen=True)
class QualityThresholds:
    min_sharpness: float = config.MIN_SHARPNESS
    min_brightness: float = config.MIN_BRIGHTNESS
    max_glare: float = config.MAX_GLARE


def luma(frame: Frame) -> np.ndarray:
    """Weighted grayscale intensity (float64, 0-255) of a frame."""
    if not frame.is_color:
        return frame.pixels.astype(np.float64)
    return frame.pixels.astype(np.float64) @ LUMA_WEIGHTS


def assess_quality(frame: Frame) -> QualityScore:
    """
    Score a frame for OCR suitability.

    Args:
        frame: Frame to score

    Returns:
        QualityScore with brightness/sharpness/glare in [0, 1] and score in [0, 100]
    """
    gray = luma(frame)
    total_pixels = gray.size

    brightness = float(gray.mean() / 255.0)
    glare = float(np.count_nonzero(gray > GLARE_LUMA) / total_pixels)
    # Mean absolute horizontal gradient between adjacent pixels
    gradient = np.abs(np.diff(gray, axis=1)).sum()
    sharpness = float(gradient / (total_pixels * 255.0))

    # Each term is 0-100 and weighs the same
    brightness_score = max(0.0, 100.0 - abs(brightness * 255.0 - 128.0) * 2.0)
    sharpness_score = min(100.0, sharpness * 255.0 * 2.0)
    glare_score = max(0.0, 100.0 - glare * 500.0)
    score = (brightness_score + sharpness_score + glare_score) / 3.0
    score = round(min(100.0, max(0.0, score)), 1)

    return QualityScore(
        brightness=min(1.0, max(0.0, brightness)),
        sharpness=min(1.0, max(0.0, sharpness)),
        glare=glare,
        score=score,
    )


def check_quality(quality: QualityScore, thresholds: QualityThresholds = QualityThresholds()) -> None:
    """
    Gate a frame on its quality score.

    Raises:
        QualityRejected: if the frame is too blurry, too dark or has too much glare
    """
    if quality.sharpness < thresholds.min_sharpness:
        logger.warning(f"Frame rejected as too blurry: sharpness={quality.sharpness:.3f}")
        raise QualityRejected("too blurry", quality)
    if quality.brightness < thresholds.min_brightness:
        logger.warning(f"Frame rejected as too dark: brightness={quality.brightness:.3f}")
        raise QualityRejected("too dark", quality)
    if quality.glare > thresholds.max_glare:
        logger.warning(f"Frame rejected for glare: glare={quality.glare:.3f}")
        raise QualityRejected("excessive glare", quality)
