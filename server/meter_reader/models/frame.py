"""
Frame and preprocessed image models.
Live frames and uploaded images are both decoded into a Frame before
quality assessment or preprocessing.
"""
from dataclasses import dataclass
from pathlib import Path

import cv2
import numpy as np
from PIL import Image

from meter_reader.errors import PreprocessFailure


@dataclass(frozen=True)
class Frame:
    """Captured pixel buffer: RGB (H x W x 3) or luma (H x W), uint8."""

    pixels: np.ndarray

    def __post_init__(self):
        pixels = np.asarray(self.pixels)
        if pixels.ndim == 3 and pixels.shape[2] == 4:
            pixels = pixels[:, :, :3]
        if pixels.ndim not in (2, 3) or (pixels.ndim == 3 and pixels.shape[2] != 3):
            raise PreprocessFailure(f"Unsupported pixel buffer shape: {pixels.shape}")
        if pixels.shape[0] == 0 or pixels.shape[1] == 0:
            raise PreprocessFailure("Frame is empty")
        if pixels.dtype != np.uint8:
            pixels = np.clip(pixels, 0, 255).astype(np.uint8)
        # Copy so later writes to the caller's array can't leak in
        pixels = pixels.copy()
        pixels.setflags(write=False)
        object.__setattr__(self, "pixels", pixels)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def is_color(self) -> bool:
        return self.pixels.ndim == 3

    @classmethod
    def from_bytes(cls, data: bytes) -> "Frame":
        """Decode an encoded image (JPEG, PNG, ...) into an RGB frame."""
        if not data:
            raise PreprocessFailure("Image data is empty")
        buffer = np.frombuffer(data, dtype=np.uint8)
        bgr = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
        if bgr is None:
            raise PreprocessFailure("Could not decode image data")
        return cls(cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB))

    @classmethod
    def from_path(cls, image_path: Path) -> "Frame":
        bgr = cv2.imread(str(image_path))
        if bgr is None:
            raise PreprocessFailure(f"Could not load image: {image_path}")
        return cls(cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB))

    @classmethod
    def from_pil(cls, image: Image.Image) -> "Frame":
        if image.mode == "L":
            return cls(np.array(image))
        return cls(np.array(image.convert("RGB")))

    def to_jpeg(self, quality: int = 80) -> bytes:
        """Encode the frame as JPEG (used for history previews)."""
        if self.is_color:
            img = cv2.cvtColor(self.pixels, cv2.COLOR_RGB2BGR)
        else:
            img = self.pixels
        ok, encoded = cv2.imencode(".jpg", img, [cv2.IMWRITE_JPEG_QUALITY, quality])
        if not ok:
            raise PreprocessFailure("Could not encode frame preview")
        return encoded.tobytes()


@dataclass
class PreprocessedImage:
    """Single-channel image ready for the recognizer."""

    pixels: np.ndarray
    variant: str = "display-optimized"

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    def to_pil(self) -> Image.Image:
        return Image.fromarray(self.pixels)
