"""
Image preprocessing for meter display recognition.
Turns a captured frame into a binarized image where the lit display
segments are white strokes on a black background.
"""
import logging
from dataclasses import dataclass

import cv2
import numpy as np

from meter_reader.errors import PreprocessFailure
from meter_reader.models.frame import Frame, PreprocessedImage
from meter_reader.ocr.quality import luma

logger = logging.getLogger(__name__)

DILATION_KERNEL = np.ones((3, 3), dtype=np.uint8)


@dataclass(frozen=True)
class PreprocessConfig:
    crop_band_fraction: float = 0.5  # Share of the height kept around the vertical center
    target_scale_multiplier: float = 2.0
    dilation_iterations: int = 2
    threshold_level: float = 0.3  # Fraction of max intensity
    contrast_factor: float = 2.5
    dominance_ratio: float = 1.5  # Text channel must exceed the others by this ratio
    brightness_floor: int = 120

    def __post_init__(self):
        if not 0 < self.crop_band_fraction <= 1:
            raise ValueError(f"crop_band_fraction must be in (0, 1], got {self.crop_band_fraction}")
        if self.target_scale_multiplier <= 0:
            raise ValueError(f"target_scale_multiplier must be > 0, got {self.target_scale_multiplier}")
        if self.dilation_iterations < 0:
            raise ValueError(f"dilation_iterations must be >= 0, got {self.dilation_iterations}")
        if not 0 <= self.threshold_level <= 1:
            raise ValueError(f"threshold_level must be in [0, 1], got {self.threshold_level}")


class ImagePreprocessor:
    """Deterministic frame-to-bitmap pipeline. Every stage returns a new array."""

    def __init__(self, config: PreprocessConfig = PreprocessConfig()):
        self.config = config

    def process(self, frame: Frame) -> PreprocessedImage:
        """
        Run the full display-optimized pipeline.

        Args:
            frame: Captured frame (RGB or luma)

        Returns:
            Strictly binary PreprocessedImage (0/255)
        """
        cfg = self.config
        try:
            img = self.normalize_orientation(frame.pixels)
            img = self.crop_band(img, cfg.crop_band_fraction)
            img = self.resize(img, cfg.target_scale_multiplier)
            img = self.segment_display(img, cfg.dominance_ratio, cfg.brightness_floor)
            img = self.stretch_contrast(img, cfg.contrast_factor)
            img = self.dilate(img, cfg.dilation_iterations)
            img = self.denoise(img)
            img = self.threshold(img, cfg.threshold_level)
        except cv2.error as e:
            raise PreprocessFailure(f"Preprocessing failed: {e}") from e

        logger.info(f"Image preprocessed: {img.shape[1]}x{img.shape[0]} (from {frame.width}x{frame.height})")
        return PreprocessedImage(img, variant="display-optimized")

    # ------------------------------------------------------------------
    # Strategy variants
    # ------------------------------------------------------------------

    def unmodified(self, frame: Frame) -> PreprocessedImage:
        """Oriented, cropped and resized luma with no enhancement."""
        return PreprocessedImage(self._base_luma(frame), variant="unmodified")

    def high_contrast(self, frame: Frame) -> PreprocessedImage:
        gray = self._base_luma(frame)
        stretched = self.stretch_contrast(gray, self.config.contrast_factor)
        return PreprocessedImage(self.threshold(stretched, 0.5), variant="high-contrast")

    def inverted(self, frame: Frame) -> PreprocessedImage:
        """Dark text on light background, for displays the segmentation misses."""
        return PreprocessedImage(255 - self._base_luma(frame), variant="inverted")

    def _base_luma(self, frame: Frame) -> np.ndarray:
        cfg = self.config
        try:
            img = self.normalize_orientation(frame.pixels)
            img = self.crop_band(img, cfg.crop_band_fraction)
            img = self.resize(img, cfg.target_scale_multiplier)
        except cv2.error as e:
            raise PreprocessFailure(f"Preprocessing failed: {e}") from e
        return np.clip(np.rint(luma(Frame(img))), 0, 255).astype(np.uint8)

    # ------------------------------------------------------------------
    # Pipeline stages
    # ------------------------------------------------------------------

    @staticmethod
    def normalize_orientation(img: np.ndarray) -> np.ndarray:
        """Rotate portrait images 90 degrees so the long axis is horizontal."""
        height, width = img.shape[:2]
        if height > width:
            return np.ascontiguousarray(np.rot90(img, k=-1))
        return img.copy()

    @staticmethod
    def crop_band(img: np.ndarray, fraction: float) -> np.ndarray:
        """Keep a horizontal band of `fraction` of the height, centered vertically."""
        height = img.shape[0]
        band = max(1, int(round(height * fraction)))
        top = (height - band) // 2
        return img[top:top + band].copy()

    @staticmethod
    def resize(img: np.ndarray, multiplier: float) -> np.ndarray:
        height, width = img.shape[:2]
        new_width = max(1, int(round(width * multiplier)))
        new_height = max(1, int(round(height * multiplier)))
        return cv2.resize(img, (new_width, new_height), interpolation=cv2.INTER_CUBIC)

    @staticmethod
    def segment_display(img: np.ndarray, ratio: float, floor: int) -> np.ndarray:
        """
        Separate emissive display text from background.

        A pixel is text when one color channel is brighter than `floor` and
        exceeds both other channels by `ratio`, whatever the display color.
        Luma images only use the brightness floor.
        """
        if img.ndim == 2:
            text = img > floor
        else:
            channels = img.astype(np.float32)
            text = np.zeros(img.shape[:2], dtype=bool)
            for c in range(3):
                others = [channels[:, :, o] for o in range(3) if o != c]
                main = channels[:, :, c]
                text |= (main > floor) & (main > others[0] * ratio) & (main > others[1] * ratio)
        return np.where(text, 255, 0).astype(np.uint8)

    @staticmethod
    def stretch_contrast(img: np.ndarray, factor: float) -> np.ndarray:
        stretched = (img.astype(np.float32) - 128.0) * factor + 128.0
        return np.clip(stretched, 0, 255).astype(np.uint8)

    @staticmethod
    def dilate(img: np.ndarray, iterations: int) -> np.ndarray:
        """Grow white strokes into their 8-neighbors `iterations` times."""
        if iterations <= 0:
            return img.copy()
        return cv2.dilate(img, DILATION_KERNEL, iterations=iterations)

    @staticmethod
    def denoise(img: np.ndarray) -> np.ndarray:
        # 3x3 median removes speckle left by dilation
        return cv2.medianBlur(img, 3)

    @staticmethod
    def threshold(img: np.ndarray, level: float) -> np.ndarray:
        return np.where(img > level * 255, 255, 0).astype(np.uint8)
