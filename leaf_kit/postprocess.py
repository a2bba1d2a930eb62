"""
Decode raw detector output into candidate boxes.

Two row layouts are supported (per image):

- BATCHED_ROWS, dims (batch, N, R) with R >= 5 + C:
  [x, y, w, h, conf, class_scores...] where (x, y) is already the top-left corner.
- FLAT_ROWS, no dims or fewer than 3 of them, rows of exactly 5 + C values:
  [cx, cy, w, h, conf, class_scores...] with a centre-based box.

The layout is decided once from the tensor's shape metadata and each layout has its
own decoder, so the two box conventions never mix.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict

import numpy as np

from .errors import OutputFormatError
from .types import OutputTensor

logger = logging.getLogger(__name__)

# Row prefix before the class scores: 4 box values + 1 confidence.
ROW_PREFIX = 5


class LayoutKind(str, Enum):
    BATCHED_ROWS = "batched_rows"
    FLAT_ROWS = "flat_rows"


def detect_layout(tensor: OutputTensor) -> LayoutKind:
    if tensor.dims is not None and len(tensor.dims) >= 3:
        return LayoutKind.BATCHED_ROWS
    return LayoutKind.FLAT_ROWS


@dataclass(frozen=True)
class Candidates:
    """
    Every decoded row, in row order, before thresholds and clamping.

    boxes: (N, 4) as x, y, w, h (top-left based, unclamped)
    class_ids: (N,) index of the best class slot
    confidences: (N,) row confidence
    class_scores: (N,) value of the best class slot
    """

    layout: LayoutKind
    boxes: np.ndarray
    class_ids: np.ndarray
    confidences: np.ndarray
    class_scores: np.ndarray

    @classmethod
    def empty(cls, layout: LayoutKind) -> "Candidates":
        return cls(
            layout=layout,
            boxes=np.zeros((0, 4), dtype=np.float64),
            class_ids=np.zeros((0,), dtype=np.int64),
            confidences=np.zeros((0,), dtype=np.float64),
            class_scores=np.zeros((0,), dtype=np.float64),
        )

    def __len__(self) -> int:
        return int(self.confidences.shape[0])


class OutputInterpreter:
    """
    Turns one `OutputTensor` into `Candidates` for a model with `num_classes` classes.
    """

    def __init__(self, num_classes: int):
        if num_classes <= 0:
            raise ValueError("num_classes must be > 0")
        self.num_classes = int(num_classes)
        self._decoders: Dict[LayoutKind, Callable[[OutputTensor], Candidates]] = {
            LayoutKind.BATCHED_ROWS: self._decode_batched_rows,
            LayoutKind.FLAT_ROWS: self._decode_flat_rows,
        }

    @property
    def flat_row_length(self) -> int:
        return ROW_PREFIX + self.num_classes

    def interpret(self, tensor: OutputTensor) -> Candidates:
        if tensor is None:
            raise OutputFormatError("Output tensor is missing.")

        layout = detect_layout(tensor)
        logger.debug("Output dims=%s values=%d -> layout %s", tensor.dims, tensor.data.size, layout.value)

        if tensor.data.size == 0:
            # A shape with a zero dimension is a legitimate "nothing found" tensor.
            if tensor.dims is not None and 0 in tensor.dims:
                return Candidates.empty(layout)
            raise OutputFormatError(f"Output tensor is empty (dims={tensor.dims}).")

        return self._decoders[layout](tensor)

    # ------------------------------------------------------------------ #
    # Layout decoders
    # ------------------------------------------------------------------ #
    def _decode_batched_rows(self, tensor: OutputTensor) -> Candidates:
        dims = tensor.dims or ()
        batch, num_boxes, row_len = dims[0], dims[1], dims[2]

        if row_len < self.flat_row_length:
            raise OutputFormatError(
                f"Rows of length {row_len} cannot hold 4 box values, a confidence and "
                f"{self.num_classes} class scores (dims={dims})."
            )
        needed = num_boxes * row_len
        if tensor.data.size < needed:
            raise OutputFormatError(f"Output has {tensor.data.size} values, dims {dims} need at least {needed}.")
        if batch > 1:
            logger.warning("Output batch size is %d; only the first image is decoded.", batch)

        rows = tensor.data[:needed].reshape(num_boxes, row_len)
        boxes = np.array(rows[:, 0:4], dtype=np.float64)
        return self._score_rows(LayoutKind.BATCHED_ROWS, rows, boxes)

    def _decode_flat_rows(self, tensor: OutputTensor) -> Candidates:
        row_len = self.flat_row_length
        total = tensor.data.size
        if total % row_len != 0:
            logger.warning(
                "Could not determine output format: %d values is not a multiple of row length %d.",
                total,
                row_len,
            )
            return Candidates.empty(LayoutKind.FLAT_ROWS)

        rows = tensor.data.reshape(total // row_len, row_len)

        # cxcywh -> top-left xywh
        cx, cy, w_box, h_box = rows[:, 0], rows[:, 1], rows[:, 2], rows[:, 3]
        boxes = np.stack([cx - w_box / 2, cy - h_box / 2, w_box, h_box], axis=1)
        return self._score_rows(LayoutKind.FLAT_ROWS, rows, boxes)

    def _score_rows(self, layout: LayoutKind, rows: np.ndarray, boxes: np.ndarray) -> Candidates:
        confidences = np.array(rows[:, 4], dtype=np.float64)
        class_block = rows[:, ROW_PREFIX : ROW_PREFIX + self.num_classes]
        # NaN slots never win the class pick.
        class_block = np.where(np.isnan(class_block), -np.inf, class_block)
        # argmax returns the first maximum, so ties go to the lowest class index.
        class_ids = np.argmax(class_block, axis=1).astype(np.int64)
        class_scores = np.array(class_block[np.arange(class_block.shape[0]), class_ids], dtype=np.float64)
        return Candidates(
            layout=layout,
            boxes=boxes,
            class_ids=class_ids,
            confidences=confidences,
            class_scores=class_scores,
        )
