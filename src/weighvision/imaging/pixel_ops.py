"""Pixel buffer operations: grayscale, thresholds, morphology, scaling.

Binary bitmaps are uint8 masks where 255 marks foreground (ink) and 0 marks
background. Document images handed to the recognition engine are the
opposite: black ink (0) on a white (255) page.
"""

import cv2
import numpy as np

# ITU-R BT.601 luma weights for R, G, B
LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114])

# The global Otsu level is relaxed by this factor before combining it with the local mean
OTSU_RELAXATION = 0.95

WHITE = 255


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """Luminosity-weighted grayscale of an RGB(A) image.

    Args:
        image: RGBA (H, W, 4) or RGB (H, W, 3) uint8 array. A 2-D array is
            treated as already gray.

    Returns:
        (H, W) uint16 array with values in 0..255.
    """
    if image.ndim == 2:
        return image.astype(np.uint16)

    rgb = image[..., :3].astype(np.float64)
    gray = np.rint(rgb @ LUMA_WEIGHTS)
    return np.clip(gray, 0, 255).astype(np.uint16)


def histogram(gray: np.ndarray) -> np.ndarray:
    """256-bin intensity histogram in a single pass over the pixels."""
    values = np.clip(gray, 0, 255).astype(np.int64).ravel()
    return np.bincount(values, minlength=256)[:256]


def otsu_threshold(hist: np.ndarray) -> int:
    """Global threshold maximising between-class variance.

    Runs in O(256) over a precomputed histogram. Class 0 is ``[0, t]``.
    Ties keep the first (lowest) maximising level.
    """
    hist = np.asarray(hist, dtype=np.float64)
    total = hist.sum()
    if total == 0:
        return 0

    sum_total = float(np.dot(np.arange(256), hist))
    weight_bg = 0.0
    sum_bg = 0.0
    best_level = 0
    best_variance = -1.0

    for level in range(256):
        weight_bg += hist[level]
        sum_bg += level * hist[level]
        if weight_bg == 0:
            continue
        weight_fg = total - weight_bg
        if weight_fg == 0:
            break

        mean_bg = sum_bg / weight_bg
        mean_fg = (sum_total - sum_bg) / weight_fg
        variance = weight_bg * weight_fg * (mean_bg - mean_fg) ** 2
        if variance > best_variance:
            best_variance = variance
            best_level = level

    return best_level


def _box_sum(values: np.ndarray, block_size: int) -> np.ndarray:
    """Sum over a block_size x block_size window centred on each pixel.

    Out-of-bounds samples contribute zero (summed-area table over a
    zero-padded copy).
    """
    half = block_size // 2
    height, width = values.shape
    padded = np.pad(values, ((half + 1, half), (half + 1, half)))
    table = padded.cumsum(axis=0).cumsum(axis=1)
    b = block_size
    return (
        table[b : b + height, b : b + width]
        - table[:height, b : b + width]
        - table[b : b + height, :width]
        + table[:height, :width]
    )


def local_adaptive_threshold(
    gray: np.ndarray,
    width: int,
    height: int,
    block_size: int,
    offset: float,
) -> np.ndarray:
    """Binarise against the local neighbourhood mean, capped by global Otsu.

    A pixel is foreground when its intensity is at or below
    ``min(otsu * 0.95, local_mean - offset)``. The neighbourhood mean only
    counts samples inside the image.

    Returns:
        (height, width) uint8 mask, 255 = foreground.
    """
    if block_size < 1:
        raise ValueError(f"block_size must be positive, got {block_size}")

    values = np.asarray(gray, dtype=np.float64).reshape(height, width)
    sums = _box_sum(values, block_size)
    counts = _box_sum(np.ones_like(values), block_size)
    local_mean = sums / counts

    global_level = otsu_threshold(histogram(values)) * OTSU_RELAXATION
    threshold = np.minimum(global_level, local_mean - offset)

    return np.where(values <= threshold, 255, 0).astype(np.uint8)


def morphological_open(
    bitmap: np.ndarray,
    width: int,
    height: int,
    kernel_radius: int = 1,
) -> np.ndarray:
    """Erode then dilate a foreground mask with a square kernel.

    OpenCV's default morphology border ignores out-of-image samples for both
    steps, which keeps the opening idempotent at the edges too.
    """
    size = 2 * kernel_radius + 1
    kernel = np.ones((size, size), dtype=np.uint8)
    mask = (np.asarray(bitmap).reshape(height, width) > 0).astype(np.uint8) * 255

    eroded = cv2.erode(mask, kernel)
    return cv2.dilate(eroded, kernel)


def binarize(gray: np.ndarray, level: int, invert: bool = False) -> np.ndarray:
    """Fixed-level threshold. Foreground is ``<= level``, or ``> level`` when inverted."""
    foreground = gray > level if invert else gray <= level
    return np.where(foreground, 255, 0).astype(np.uint8)


def contrast_stretch(gray: np.ndarray) -> np.ndarray:
    """Linearly map the observed [min, max] range onto [0, 255]."""
    low = int(gray.min())
    high = int(gray.max())
    if high == low:
        return gray.astype(np.uint16, copy=True)

    stretched = (gray.astype(np.float64) - low) * 255.0 / (high - low)
    return np.rint(stretched).astype(np.uint16)


def mask_to_document(mask: np.ndarray) -> np.ndarray:
    """Render a foreground mask as black ink on a white page."""
    return np.where(mask > 0, 0, WHITE).astype(np.uint8)


def scale(image: np.ndarray, factor: float) -> np.ndarray:
    """Resize by ``factor`` on both axes (bicubic)."""
    if factor == 1:
        return image.copy()
    return cv2.resize(image, None, fx=factor, fy=factor, interpolation=cv2.INTER_CUBIC)


def pad(image: np.ndarray, margin: int, fill: int = WHITE) -> np.ndarray:
    """Surround the image with a solid border so edge glyphs are not clipped."""
    if margin <= 0:
        return image.copy()
    channels = 1 if image.ndim == 2 else image.shape[2]
    value = fill if channels == 1 else (fill,) * channels
    return cv2.copyMakeBorder(image, margin, margin, margin, margin, cv2.BORDER_CONSTANT, value=value)
