"""
Boundary between the detection pipeline and whatever runs the model.

A gateway takes named NumPy inputs and returns named `OutputTensor`s. The pipeline
only ever talks to this interface, so tests can drive it with fakes that return
hand-crafted outputs.
"""

from __future__ import annotations

import logging
from typing import Mapping, Optional, Protocol, Sequence, Tuple, runtime_checkable

import numpy as np

from .config import DEFAULT_OUTPUT_NAMES
from .errors import OutputFormatError
from .types import OutputTensor

logger = logging.getLogger(__name__)


@runtime_checkable
class InferenceGateway(Protocol):
    def run(self, named_inputs: Mapping[str, np.ndarray]) -> Mapping[str, OutputTensor]:
        """
        Execute the model once.

        Raises:
            ModelLoadError: the model could not be (re)loaded.
            InferenceError: the runtime failed while executing.
        """
        ...

    def close(self) -> None:
        ...


def select_output(
    outputs: Mapping[str, OutputTensor],
    preferred_names: Optional[Sequence[str]] = None,
) -> Tuple[str, OutputTensor]:
    """
    Pick the detection output among the tensors a gateway returned.

    Tries `preferred_names` in order, then falls back to the first output present.
    """

    if not outputs:
        raise OutputFormatError("Model returned no outputs.")

    names = DEFAULT_OUTPUT_NAMES if preferred_names is None else preferred_names
    for name in names:
        tensor = outputs.get(name)
        if tensor is not None:
            logger.info("Using model output %r", name)
            return name, tensor

    first = next(iter(outputs))
    logger.info("No conventional output name matched; using first output %r", first)
    return first, outputs[first]
