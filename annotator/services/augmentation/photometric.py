"""
Photometric adjustments

Brightness, contrast and saturation act on the RGB channels only (alpha is
left untouched) and never on annotations. Each value is a signed offset in
[-100, 100] where 0 is the identity.
"""
import numpy as np

# ITU-R BT.601 luma weights
LUMA_WEIGHTS = np.array([0.2989, 0.5870, 0.1140], dtype=np.float32)


def adjust(array: np.ndarray, brightness: int = 0, contrast: int = 0, saturation: int = 0) -> np.ndarray:
    """
    Apply brightness, contrast and saturation in that order

    Args:
        array: uint8 image array of shape (H, W, 3) or (H, W, 4)
        brightness: Offset added to every channel, as a percentage of 255
        contrast: Scale around mid-gray; -100 flattens to gray
        saturation: Scale around luma; -100 gives grayscale

    Returns:
        New uint8 array of the same shape
    """
    if not (brightness or contrast or saturation):
        return array.copy()

    rgb = array[..., :3].astype(np.float32)

    if brightness:
        rgb += 255.0 * brightness / 100.0

    if contrast:
        factor = (contrast + 100) / 100.0
        rgb = ((rgb / 255.0 - 0.5) * factor + 0.5) * 255.0

    if saturation:
        factor = (saturation + 100) / 100.0
        gray = (rgb @ LUMA_WEIGHTS)[..., np.newaxis]
        rgb = gray + (rgb - gray) * factor

    result = array.copy()
    result[..., :3] = np.clip(np.rint(rgb), 0, 255).astype(np.uint8)
    return result
