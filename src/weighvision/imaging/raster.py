"""Decoded photo container and input validation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import cv2
import numpy as np

from weighvision.errors import InvalidInputError, PreprocessingError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RasterImage:
    """An immutable RGBA8 photo.

    The pixel buffer is copied on construction and marked read-only, so
    every transform in the pipeline works on its own copy.

    Args:
        pixels: RGBA array (H, W, 4) of uint8.
    """

    pixels: np.ndarray = field(repr=False)

    def __post_init__(self) -> None:
        pixels = np.array(self.pixels, dtype=np.uint8, copy=True)
        if pixels.ndim != 3 or pixels.shape[2] != 4:
            raise InvalidInputError(f"Expected an RGBA array, got shape {pixels.shape}")
        if pixels.shape[0] == 0 or pixels.shape[1] == 0:
            raise InvalidInputError("Image has zero size")
        pixels.setflags(write=False)
        object.__setattr__(self, "pixels", pixels)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @classmethod
    def from_array(cls, array: np.ndarray) -> RasterImage:
        """Build from a grayscale (H, W), RGB (H, W, 3) or RGBA (H, W, 4) array."""
        array = np.asarray(array)
        if array.size == 0:
            raise InvalidInputError("Image has zero size")
        array = array.astype(np.uint8, copy=False)

        if array.ndim == 2:
            return cls(cv2.cvtColor(array, cv2.COLOR_GRAY2RGBA))
        if array.ndim == 3 and array.shape[2] == 3:
            return cls(cv2.cvtColor(array, cv2.COLOR_RGB2RGBA))
        if array.ndim == 3 and array.shape[2] == 4:
            return cls(array)
        raise InvalidInputError(f"Unsupported image shape: {array.shape}")

    @classmethod
    def decode(cls, data: bytes) -> RasterImage:
        """Decode an encoded photo (JPEG, PNG, ...) into RGBA.

        Raises:
            PreprocessingError: If OpenCV cannot decode the bytes.
        """
        buffer = np.frombuffer(data, dtype=np.uint8)
        bgr = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
        if bgr is None:
            raise PreprocessingError("Could not decode image data")
        return cls(cv2.cvtColor(bgr, cv2.COLOR_BGR2RGBA))


def load_source(image: RasterImage | np.ndarray | bytes | bytearray | None) -> RasterImage | bytes:
    """Validate caller input and turn it into a pipeline source.

    Encoded bytes that cannot be decoded are returned unchanged so the
    engine still gets a chance to read the original photo.

    Raises:
        InvalidInputError: For missing, empty or zero-sized input.
    """
    if image is None:
        raise InvalidInputError("No image supplied")

    if isinstance(image, RasterImage):
        return image

    if isinstance(image, (bytes, bytearray, memoryview)):
        data = bytes(image)
        if not data:
            raise InvalidInputError("Image data is empty")
        try:
            return RasterImage.decode(data)
        except PreprocessingError:
            logger.warning("Image decode failed, passing %d original bytes through", len(data))
            return data

    if isinstance(image, np.ndarray):
        return RasterImage.from_array(image)

    raise InvalidInputError(f"Unsupported image type: {type(image).__name__}")
