"""
Darkness field of an RGBA8 bitmap.

The darkness of a pixel is the probability mass used both for initial site
sampling and for centroid weighting: black is 1, white is 0.
"""

import numpy as np

# ITU-R BT.601 luma weights
LUMA_WEIGHTS = (0.299, 0.587, 0.114)
GRAY_DIVISOR = 254.0


def gray_value(rgba, index: int) -> float:
    """Darkness of pixel ``index`` in a flat RGBA8 buffer."""
    offset = index * 4
    luminance = (LUMA_WEIGHTS[0] * rgba[offset]
                 + LUMA_WEIGHTS[1] * rgba[offset + 1]
                 + LUMA_WEIGHTS[2] * rgba[offset + 2])
    return min(max(1.0 - luminance / GRAY_DIVISOR, 0.0), 1.0)


def darkness_from_rgba(buffer, width: int, height: int) -> np.ndarray:
    """
    Convert a row-major RGBA8 buffer into a darkness grid.

    Args:
        buffer: bytes-like object or uint8 array holding at least
            width * height * 4 values; alpha is ignored
        width: Bitmap width in pixels
        height: Bitmap height in pixels

    Returns:
        (height, width) float64 array with values in [0, 1]

    Raises:
        ValueError: If the dimensions are negative or the buffer is too short
    """
    if width < 0 or height < 0:
        raise ValueError(f"Invalid bitmap size {width}x{height}")

    if isinstance(buffer, (bytes, bytearray, memoryview)):
        data = np.frombuffer(buffer, dtype=np.uint8)
    else:
        data = np.asarray(buffer, dtype=np.uint8).ravel()

    needed = width * height * 4
    if data.size < needed:
        raise ValueError(f"RGBA buffer holds {data.size} bytes, {needed} required for {width}x{height}")

    rgba = data[:needed].reshape(height, width, 4).astype(np.float64)
    luminance = rgba[..., :3] @ np.asarray(LUMA_WEIGHTS)
    return np.clip(1.0 - luminance / GRAY_DIVISOR, 0.0, 1.0)
