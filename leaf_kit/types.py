from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional, Sequence, Tuple, Union

import numpy as np

from .errors import ShapeMismatchError

if TYPE_CHECKING:  # pragma: no cover
    from .postprocess import LayoutKind


@dataclass(frozen=True)
class RawImage:
    """
    Decoded RGBA pixels, row-major, shape (height, width, 4), dtype uint8.

    The array is marked read-only on construction.
    """

    width: int
    height: int
    data: np.ndarray

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ShapeMismatchError(f"Image dimensions must be positive, got {self.width}x{self.height}")

        arr = np.asarray(self.data, dtype=np.uint8)
        expected = self.width * self.height * 4
        if arr.size != expected:
            raise ShapeMismatchError(
                f"RGBA buffer has {arr.size} bytes, expected {expected} for {self.width}x{self.height}"
            )
        arr = arr.reshape(self.height, self.width, 4)
        arr.setflags(write=False)
        object.__setattr__(self, "data", arr)

    @classmethod
    def from_buffer(cls, width: int, height: int, buffer: Union[bytes, bytearray, Sequence[int], np.ndarray]) -> "RawImage":
        if isinstance(buffer, (bytes, bytearray)):
            arr = np.frombuffer(bytes(buffer), dtype=np.uint8)
        else:
            arr = np.asarray(buffer, dtype=np.uint8)
        return cls(width=int(width), height=int(height), data=arr.copy())

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height


@dataclass(frozen=True)
class InputTensor:
    """
    Float32 model input in NCHW layout, shape (1, 3, S, S), values in [0, 1].
    """

    data: np.ndarray

    def __post_init__(self) -> None:
        if self.data.ndim != 4 or self.data.shape[0] != 1 or self.data.shape[1] != 3:
            raise ShapeMismatchError(f"Expected tensor shape (1, 3, S, S), got {self.data.shape}")
        if self.data.shape[2] != self.data.shape[3]:
            raise ShapeMismatchError(f"Expected a square tensor, got {self.data.shape}")

    @property
    def dims(self) -> Tuple[int, int, int, int]:
        n, c, h, w = self.data.shape
        return int(n), int(c), int(h), int(w)

    @property
    def side(self) -> int:
        return int(self.data.shape[2])

    @property
    def flat(self) -> np.ndarray:
        return self.data.reshape(-1)


@dataclass(frozen=True)
class OutputTensor:
    """
    Flat numeric view of one model output plus its shape, when the runtime reports one.
    """

    data: np.ndarray
    dims: Optional[Tuple[int, ...]] = None

    def __post_init__(self) -> None:
        arr = np.asarray(self.data, dtype=np.float64).reshape(-1)
        arr.setflags(write=False)
        object.__setattr__(self, "data", arr)
        if self.dims is not None:
            object.__setattr__(self, "dims", tuple(int(d) for d in self.dims))

    @classmethod
    def from_array(cls, array: np.ndarray) -> "OutputTensor":
        arr = np.asarray(array)
        return cls(data=arr.reshape(-1), dims=tuple(arr.shape))

    def __len__(self) -> int:
        return int(self.data.size)


@dataclass(frozen=True)
class Detection:
    """
    One labeled box in normalized image coordinates.

    x, y is the top-left corner; every geometry field lies in [0, 1].
    """

    x: float
    y: float
    width: float
    height: float
    label: str
    score: float
    class_id: Optional[int] = None

    def as_xywh(self) -> Tuple[float, float, float, float]:
        return self.x, self.y, self.width, self.height

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.x, self.y, self.x + self.width, self.y + self.height

    def to_pixels(self, image_width: int, image_height: int) -> Tuple[int, int, int, int]:
        """Box as integer pixel xyxy for an image of the given size."""
        x1, y1, x2, y2 = self.as_xyxy()
        return (
            int(round(x1 * image_width)),
            int(round(y1 * image_height)),
            int(round(min(x2, 1.0) * image_width)),
            int(round(min(y2, 1.0) * image_height)),
        )


@dataclass(frozen=True)
class DetectionResult:
    """
    Outcome of one detection attempt, tagged with the identity of the image it ran on.

    An empty `detections` tuple is a valid result; failures are raised instead.
    """

    image_id: str
    detections: Tuple[Detection, ...] = field(default_factory=tuple)
    layout: Optional["LayoutKind"] = None

    @property
    def is_empty(self) -> bool:
        return not self.detections

    def __len__(self) -> int:
        return len(self.detections)

    def __iter__(self):
        return iter(self.detections)
