from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Union

import numpy as np

from ..errors import InferenceError, ModelLoadError
from ..types import OutputTensor

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass(frozen=True)
class TorchScriptGatewayConfig:
    """
    Configuration for TorchScript inference.

    - device: "cpu" or "cuda" (if available)
    - half: cast input to float16 (only if the model expects it)
    """

    device: str = "cpu"
    half: bool = False


class TorchScriptGateway:
    """
    Inference gateway using `torch.jit.load`.

    TorchScript modules take positional tensors, so only the single named input is
    forwarded. Outputs carry no names: a single tensor is returned as "output", a
    tuple/list as "output0", "output1", ...
    """

    def __init__(self, model_path: PathLike, cfg: TorchScriptGatewayConfig = TorchScriptGatewayConfig()):
        try:
            import torch  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ModelLoadError("torch is required for the TorchScript gateway. Install with `pip install torch`.") from e

        self._torch = torch
        self.model_path = Path(model_path)
        if not self.model_path.is_file():
            raise ModelLoadError(f"Model artifact not found: {self.model_path}")

        self.device = torch.device(cfg.device)
        self.half = cfg.half

        try:
            model = torch.jit.load(str(self.model_path), map_location=self.device)
        except Exception as e:
            raise ModelLoadError(f"Could not load TorchScript model {self.model_path}: {e}") from e
        model.eval()
        self.model = model
        logger.info("Loaded %s on %s", self.model_path.name, self.device)

    def run(self, named_inputs: Mapping[str, np.ndarray]) -> Dict[str, OutputTensor]:
        if self.model is None:
            raise InferenceError("TorchScript gateway is closed.")
        if len(named_inputs) != 1:
            raise InferenceError(f"TorchScript gateway expects exactly one input, got {list(named_inputs)}")

        torch = self._torch
        blob = next(iter(named_inputs.values()))
        x = torch.as_tensor(blob, device=self.device)
        x = x.half() if self.half else x.float()
        x = x.contiguous()

        try:
            with torch.no_grad():
                y = self.model(x)
        except Exception as e:
            raise InferenceError(f"TorchScript model {self.model_path.name} failed: {e}") from e

        if isinstance(y, (tuple, list)):
            return {f"output{i}": self._to_output(t) for i, t in enumerate(y)}
        return {"output": self._to_output(y)}

    @staticmethod
    def _to_output(t: Any) -> OutputTensor:
        if hasattr(t, "detach"):
            t = t.detach()
        return OutputTensor.from_array(t.to("cpu").float().numpy())

    def close(self) -> None:
        self.model = None

    def __enter__(self) -> "TorchScriptGateway":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
