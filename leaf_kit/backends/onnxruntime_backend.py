from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, Union

import numpy as np

from ..errors import InferenceError, ModelLoadError
from ..types import OutputTensor

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass(frozen=True)
class OnnxRuntimeGatewayConfig:
    """
    Configuration for ONNX Runtime inference.

    - providers: ORT execution providers (e.g., ["CUDAExecutionProvider", "CPUExecutionProvider"])
    - intra_op_num_threads: 0 lets ORT decide
    """

    providers: Optional[Sequence[str]] = None
    intra_op_num_threads: int = 0


class OnnxRuntimeGateway:
    """
    Inference gateway backed by an `onnxruntime.InferenceSession`.

    The session is created in the constructor and released by `close()`; use it as a
    context manager to scope its lifetime. Every model output is returned, keyed by
    the name the model declares.
    """

    def __init__(self, model_path: PathLike, cfg: OnnxRuntimeGatewayConfig = OnnxRuntimeGatewayConfig()):
        try:
            import onnxruntime as ort  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ModelLoadError(
                "onnxruntime is required for the ONNX gateway. Install it with `pip install onnxruntime` "
                "(or `onnxruntime-gpu`)."
            ) from e

        self._ort = ort
        self.model_path = Path(model_path)
        if not self.model_path.is_file():
            raise ModelLoadError(f"Model artifact not found: {self.model_path}")

        sess_opts = ort.SessionOptions()
        if cfg.intra_op_num_threads > 0:
            sess_opts.intra_op_num_threads = cfg.intra_op_num_threads
        providers = list(cfg.providers) if cfg.providers is not None else None
        try:
            self.session = ort.InferenceSession(str(self.model_path), sess_options=sess_opts, providers=providers)
        except Exception as e:
            raise ModelLoadError(f"Could not load ONNX model {self.model_path}: {e}") from e

        self.input_names = tuple(i.name for i in self.session.get_inputs())
        self.output_names = tuple(o.name for o in self.session.get_outputs())
        logger.info(
            "Loaded %s (inputs=%s, outputs=%s, providers=%s)",
            self.model_path.name,
            list(self.input_names),
            list(self.output_names),
            list(self.providers_in_use),
        )

    @property
    def providers_in_use(self) -> Sequence[str]:
        # ORT returns providers in priority order for this session.
        if self.session is None:
            return ()
        return tuple(self.session.get_providers())

    @property
    def available_providers(self) -> Sequence[str]:
        return tuple(self._ort.get_available_providers())

    def run(self, named_inputs: Mapping[str, np.ndarray]) -> Dict[str, OutputTensor]:
        if self.session is None:
            raise InferenceError("ONNX gateway is closed.")

        feeds: Dict[str, Any] = dict(named_inputs)
        try:
            outputs = self.session.run(None, feeds)
        except Exception as e:
            raise InferenceError(f"ONNX Runtime failed while running {self.model_path.name}: {e}") from e

        return {name: OutputTensor.from_array(np.asarray(arr)) for name, arr in zip(self.output_names, outputs)}

    def close(self) -> None:
        self.session = None

    def __enter__(self) -> "OnnxRuntimeGateway":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
