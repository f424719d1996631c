"""Named preprocessing variants derived from one source photo.

Every variant starts from the original source, never from another variant,
so they can be built in any order. Each produces a document image (black
ink on white) for the recognition engine.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

import cv2
import numpy as np

from weighvision.errors import PreprocessingError
from weighvision.imaging import pixel_ops
from weighvision.imaging.raster import RasterImage

logger = logging.getLogger(__name__)


class Mode(str, Enum):
    """What the photo is expected to show."""

    PLATE = "plate"
    WEIGHT = "weight"
    PRODUCT = "product"


@dataclass(frozen=True)
class ModeParams:
    """Tuning for the adaptive variant."""

    scale: float
    block_size: int
    offset: float
    pad_margin: int = 20


DEFAULT_MODE_PARAMS: dict[Mode, ModeParams] = {
    Mode.PLATE: ModeParams(scale=3.0, block_size=25, offset=10),
    Mode.WEIGHT: ModeParams(scale=2.5, block_size=15, offset=5),
}

# The fixed-threshold variants always upscale by this factor
FIXED_SCALE = 3.0
HARD_THRESHOLD = 100
MID_THRESHOLD = 128


@dataclass(frozen=True)
class PreprocessedVariant:
    """A named engine input.

    ``image`` is a document image, or the untouched source (RGBA array or
    encoded bytes) when ``fallback`` is set.
    """

    name: str
    image: np.ndarray | bytes = field(repr=False)
    fallback: bool = False


def adaptive(rgba: np.ndarray, params: ModeParams) -> np.ndarray:
    """Upscale, Otsu-capped local threshold, opening, white border."""
    scaled = pixel_ops.scale(rgba, params.scale)
    gray = pixel_ops.to_grayscale(scaled)
    height, width = gray.shape

    mask = pixel_ops.local_adaptive_threshold(gray, width, height, params.block_size, params.offset)
    mask = pixel_ops.morphological_open(mask, width, height)
    return pixel_ops.pad(pixel_ops.mask_to_document(mask), params.pad_margin)


def high_contrast(rgba: np.ndarray, params: ModeParams) -> np.ndarray:
    """Upscale and cut hard at gray level 100."""
    gray = pixel_ops.to_grayscale(pixel_ops.scale(rgba, FIXED_SCALE))
    return pixel_ops.mask_to_document(pixel_ops.binarize(gray, HARD_THRESHOLD))


def inverted(rgba: np.ndarray, params: ModeParams) -> np.ndarray:
    """Upscale and threshold at 128 with flipped polarity (light-on-dark text)."""
    gray = pixel_ops.to_grayscale(pixel_ops.scale(rgba, FIXED_SCALE))
    return pixel_ops.mask_to_document(pixel_ops.binarize(gray, MID_THRESHOLD, invert=True))


def contrast_stretched(rgba: np.ndarray, params: ModeParams) -> np.ndarray:
    """Upscale, stretch to the full range, threshold at 128."""
    gray = pixel_ops.to_grayscale(pixel_ops.scale(rgba, FIXED_SCALE))
    stretched = pixel_ops.contrast_stretch(gray)
    return pixel_ops.mask_to_document(pixel_ops.binarize(stretched, MID_THRESHOLD))


VARIANT_BUILDERS: dict[str, Callable[[np.ndarray, ModeParams], np.ndarray]] = {
    "adaptive": adaptive,
    "high_contrast": high_contrast,
    "inverted": inverted,
    "contrast_stretch": contrast_stretched,
}

VARIANTS_BY_MODE: dict[Mode, tuple[str, ...]] = {
    Mode.PLATE: ("adaptive", "high_contrast", "inverted", "contrast_stretch"),
    Mode.WEIGHT: ("adaptive",),
}


def original(source: RasterImage | bytes) -> PreprocessedVariant:
    """The unprocessed source as an engine input."""
    if isinstance(source, RasterImage):
        return PreprocessedVariant("original", source.pixels)
    return PreprocessedVariant("original", source, fallback=True)


def generate_variants(
    source: RasterImage | bytes,
    mode: Mode,
    params: ModeParams | None = None,
    names: tuple[str, ...] | None = None,
) -> list[PreprocessedVariant]:
    """Build the variant set for ``mode``.

    A variant whose transform fails falls back to the unmodified source.
    Undecoded sources (raw bytes) make every variant a fallback.

    Args:
        source: Decoded photo, or the original bytes when decoding failed.
        mode: PLATE or WEIGHT.
        params: Adaptive-variant tuning; defaults to the mode's constants.
        names: Variant names to build, in order; defaults to the mode's set.
    """
    if mode not in VARIANTS_BY_MODE:
        raise ValueError(f"No preprocessing variants for mode {mode.value!r}")

    params = params or DEFAULT_MODE_PARAMS[mode]
    names = names or VARIANTS_BY_MODE[mode]

    if not isinstance(source, RasterImage):
        return [PreprocessedVariant(name, source, fallback=True) for name in names]

    variants = []
    for name in names:
        builder = VARIANT_BUILDERS[name]
        try:
            image = builder(source.pixels, params)
        except (cv2.error, ValueError, PreprocessingError) as exc:
            logger.warning("Variant '%s' failed (%s), using the original image", name, exc)
            variants.append(PreprocessedVariant(name, source.pixels, fallback=True))
            continue
        variants.append(PreprocessedVariant(name, image))

    logger.debug("Built %d %s variants from %dx%d source", len(variants), mode.value, source.width, source.height)
    return variants
