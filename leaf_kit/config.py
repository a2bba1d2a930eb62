from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Tuple, Union


DEFAULT_INPUT_SIZE = 640
DEFAULT_INPUT_NAME = "images"
DEFAULT_OUTPUT_NAMES: Tuple[str, ...] = ("output", "output0", "detection_output", "detections", "predictions")
DEFAULT_CONFIDENCE_THRESHOLD = 0.25
DEFAULT_CLASS_SCORE_THRESHOLD = 0.25


@dataclass(frozen=True)
class DetectorConfig:
    """
    Knobs for one detector: model input geometry, I/O names and score thresholds.

    - input_size: side S of the square image the model expects
    - input_name: name of the single model input fed by the pipeline
    - output_names: conventional output names tried in order before falling back
      to the first output the runtime returns
    - confidence_threshold / class_score_threshold: a box is kept only when both
      scores are strictly greater than these
    """

    input_size: int = DEFAULT_INPUT_SIZE
    input_name: str = DEFAULT_INPUT_NAME
    output_names: Tuple[str, ...] = DEFAULT_OUTPUT_NAMES
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD
    class_score_threshold: float = DEFAULT_CLASS_SCORE_THRESHOLD

    def __post_init__(self) -> None:
        if self.input_size <= 0:
            raise ValueError("input_size must be > 0")
        if not self.input_name:
            raise ValueError("input_name must be a non-empty string")
        object.__setattr__(self, "output_names", tuple(self.output_names))
        if not 0.0 <= self.confidence_threshold <= 1.0:
            raise ValueError("confidence_threshold must be within [0, 1]")
        if not 0.0 <= self.class_score_threshold <= 1.0:
            raise ValueError("class_score_threshold must be within [0, 1]")


def _require_number(payload: Dict[str, Any], key: str, default: float) -> float:
    if key not in payload:
        return default
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    return float(value)


def _require_int(payload: Dict[str, Any], key: str, default: int) -> int:
    if key not in payload:
        return default
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    return int(value)


def load_detector_config(path: Union[str, Path]) -> DetectorConfig:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Detector config not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid detector config JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Detector config must be a JSON object")

    allowed = {
        "schema_version",
        "input_size",
        "input_name",
        "output_names",
        "confidence_threshold",
        "class_score_threshold",
    }
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise ValueError(f"Unknown detector config keys: {unknown}")

    if _require_int(payload, "schema_version", 1) != 1:
        raise ValueError("detector config schema_version must be 1")

    input_name = payload.get("input_name", DEFAULT_INPUT_NAME)
    if not isinstance(input_name, str):
        raise ValueError("input_name must be a string")

    output_names = payload.get("output_names", list(DEFAULT_OUTPUT_NAMES))
    if not isinstance(output_names, list) or not all(isinstance(n, str) for n in output_names):
        raise ValueError("output_names must be a list of strings")

    return DetectorConfig(
        input_size=_require_int(payload, "input_size", DEFAULT_INPUT_SIZE),
        input_name=input_name,
        output_names=tuple(output_names),
        confidence_threshold=_require_number(payload, "confidence_threshold", DEFAULT_CONFIDENCE_THRESHOLD),
        class_score_threshold=_require_number(payload, "class_score_threshold", DEFAULT_CLASS_SCORE_THRESHOLD),
    )
