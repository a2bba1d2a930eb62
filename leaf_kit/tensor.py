from __future__ import annotations

import numpy as np

from .errors import ShapeMismatchError
from .types import InputTensor, RawImage


def pack_tensor(image: RawImage, side: int) -> InputTensor:
    """
    Pack RGBA pixels into the model's float32 NCHW input.

    The image must already be `side` x `side`. Alpha is dropped, R/G/B are scaled to
    [0, 1] and laid out channel-outer, row-middle, column-inner.
    """

    if image.width != side or image.height != side:
        raise ShapeMismatchError(
            f"Expected a {side}x{side} image for packing, got {image.width}x{image.height}. "
            "Resize it first (see resize_to_square)."
        )

    # HWC RGBA -> RGB, normalize, HWC -> CHW, add batch
    rgb = np.asarray(image.data)[:, :, :3]
    blob = rgb.astype(np.float32) / np.float32(255.0)
    blob = np.ascontiguousarray(np.transpose(blob, (2, 0, 1))[None, ...])
    return InputTensor(data=blob)
