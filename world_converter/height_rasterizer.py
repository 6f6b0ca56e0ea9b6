"""
Normalises a stitched height field into an 8-bit grayscale raster.

    pixel = round(255 * (height - min) / (max - min)), clamped to 0..255

A perfectly flat field (max == min) has no range to normalise against;
every pixel is then FLAT_FIELD_PIXEL.  Non-finite samples map to 0.
"""

import logging

import numpy as np

try:
    from PIL import Image
except ImportError:
    raise ImportError(
        "Pillow is required for heightmap rasterization.  "
        "Install with: pip install Pillow"
    )

from .errors import EmptyHeightFieldError

log = logging.getLogger(__name__)

# Pixel value of every cell when all elevations are equal.
FLAT_FIELD_PIXEL = 0


def normalize_heights(heights, extremes, flat_value=FLAT_FIELD_PIXEL):
    """
    Map a 2-D array of elevations to uint8 pixel values.

    Args:
        heights: 2-D array-like of elevations.
        extremes: ElevationExtremes covering *heights*.
        flat_value: Pixel value used when extremes.minimum == maximum.

    Returns:
        numpy.ndarray: uint8 array of the same shape.

    Raises:
        EmptyHeightFieldError: If *extremes* holds no sample.
    """
    if not extremes.has_value:
        raise EmptyHeightFieldError()

    hm = np.asarray(heights, dtype=np.float64)
    delta = extremes.maximum - extremes.minimum
    if delta <= 0.0:
        log.warning("Flat height field (all samples %s), emitting constant "
                    "raster of %d", extremes.minimum, flat_value)
        return np.full(hm.shape, flat_value, dtype=np.uint8)

    hm = np.where(np.isfinite(hm), hm, extremes.minimum)
    scaled = np.rint(255.0 * (hm - extremes.minimum) / delta)
    return np.clip(scaled, 0, 255).astype(np.uint8)


def rasterize_height_field(field, extremes, flat_value=FLAT_FIELD_PIXEL):
    """
    Render a GlobalHeightField as a Pillow "L" image.

    The image is ``field.width`` x ``field.height`` pixels.

    Raises:
        EmptyHeightFieldError: If *extremes* holds no sample.
    """
    pixels = normalize_heights(field.as_array(), extremes,
                               flat_value=flat_value)
    # 2-D uint8 arrays load as mode "L"
    img = Image.fromarray(pixels)
    log.info("Rasterized %dx%d heightmap", img.width, img.height)
    return img
