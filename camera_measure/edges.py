"""
Sobel edge highlighting for the frozen base frame.

The frame is overwritten in place with the gradient magnitude of its
luminance, replicated over the colour channels. The outer one-pixel ring has
no full 3x3 neighbourhood and is left as it was.
"""

from __future__ import annotations

import cv2
import numpy as np

SOBEL_X = np.array([[-1, 0, 1], [-2, 0, 2], [-1, 0, 1]], dtype=np.float32)
SOBEL_Y = np.array([[-1, -2, -1], [0, 0, 0], [1, 2, 1]], dtype=np.float32)


def luminance(image: np.ndarray) -> np.ndarray:
    """0.299R + 0.587G + 0.114B for a BGR(A) uint8 image, as float32."""
    b = image[..., 0].astype(np.float32)
    g = image[..., 1].astype(np.float32)
    r = image[..., 2].astype(np.float32)
    return 0.299 * r + 0.587 * g + 0.114 * b


def gradient_magnitude(gray: np.ndarray) -> np.ndarray:
    """Sobel magnitude of a float32 field. Only the interior (shape - 2) is returned."""
    # filter2D correlates, which is how the kernels above are laid out
    gx = cv2.filter2D(gray, cv2.CV_32F, SOBEL_X, borderType=cv2.BORDER_REPLICATE)
    gy = cv2.filter2D(gray, cv2.CV_32F, SOBEL_Y, borderType=cv2.BORDER_REPLICATE)
    magnitude = cv2.magnitude(gx, gy)
    return magnitude[1:-1, 1:-1]


def apply_edge_filter(image: np.ndarray) -> np.ndarray:
    """
    Replace `image` (H x W x 3 or 4, uint8) with its edge magnitude, in place.
    Returns the same array for chaining. Frames smaller than 3x3 are unchanged.
    """
    if image.ndim != 3 or image.shape[2] not in (3, 4):
        raise ValueError(f"Expected a BGR or BGRA image, got shape {image.shape}")
    h, w = image.shape[:2]
    if h < 3 or w < 3:
        return image

    magnitude = gradient_magnitude(luminance(image))
    values = np.clip(np.rint(magnitude), 0, 255).astype(np.uint8)

    interior = image[1:-1, 1:-1]
    interior[..., 0] = values
    interior[..., 1] = values
    interior[..., 2] = values
    if image.shape[2] == 4:
        interior[..., 3] = 255
    return image
