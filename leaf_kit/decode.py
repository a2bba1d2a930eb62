from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

import numpy as np

from .errors import DecodeError, ShapeMismatchError
from .types import RawImage

logger = logging.getLogger(__name__)


def _cv2():
    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for image decoding. Install with `pip install opencv-python`.") from e
    return cv2


def decode_image(encoded: Union[bytes, bytearray, memoryview, np.ndarray]) -> RawImage:
    """
    Decode an encoded image (JPEG, or anything `cv2.imdecode` reads) into RGBA pixels.

    Raises:
        DecodeError: empty, truncated, malformed or unsupported input.
    """

    cv2 = _cv2()

    if isinstance(encoded, np.ndarray):
        buf = np.ascontiguousarray(encoded, dtype=np.uint8).reshape(-1)
    else:
        buf = np.frombuffer(bytes(encoded), dtype=np.uint8)
    if buf.size == 0:
        raise DecodeError("Image buffer is empty.")

    try:
        bgr = cv2.imdecode(buf, cv2.IMREAD_COLOR)
    except cv2.error as exc:
        raise DecodeError(f"Could not decode image ({buf.size} bytes): {exc}") from exc
    if bgr is None or bgr.size == 0:
        raise DecodeError(f"Could not decode image ({buf.size} bytes): malformed or unsupported encoding.")

    height, width = bgr.shape[:2]
    if width <= 0 or height <= 0:
        raise DecodeError(f"Decoded image has invalid size {width}x{height}.")

    rgba = cv2.cvtColor(bgr, cv2.COLOR_BGR2RGBA)
    logger.debug("Decoded %d bytes into %dx%d RGBA", buf.size, width, height)
    return RawImage(width=int(width), height=int(height), data=rgba)


def decode_image_file(path: Union[str, Path]) -> RawImage:
    path = Path(path)
    try:
        encoded = path.read_bytes()
    except OSError as exc:
        raise DecodeError(f"Could not read image at path: {path}") from exc
    return decode_image(encoded)


def resize_to_square(image: RawImage, side: int) -> RawImage:
    """
    Stretch `image` to exactly `side` x `side` pixels (bilinear, aspect ratio not kept).

    Boxes predicted on the stretched image stay valid as fractions of the original
    image, so no coordinate remapping is needed afterwards.
    """

    if side <= 0:
        raise ShapeMismatchError(f"Target side must be positive, got {side}")
    if image.width == side and image.height == side:
        return image

    cv2 = _cv2()
    resized = cv2.resize(image.data.copy(), (side, side), interpolation=cv2.INTER_LINEAR)
    logger.debug("Resized %dx%d -> %dx%d", image.width, image.height, side, side)
    return RawImage(width=side, height=side, data=resized)
