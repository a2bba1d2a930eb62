from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .types import Detection, DetectionResult


def detection_to_dict(d: Detection) -> Dict[str, Any]:
    payload = asdict(d)
    payload["box"] = {k: payload.pop(k) for k in ("x", "y", "width", "height")}
    return payload


def detections_to_dict(result: DetectionResult) -> Dict[str, Any]:
    return {
        "image_id": result.image_id,
        "layout": result.layout.value if result.layout is not None else None,
        "count": len(result.detections),
        "detections": [detection_to_dict(d) for d in result.detections],
    }


def write_detections_json(
    path: Union[str, Path],
    result: DetectionResult,
    *,
    model_path: Optional[Union[str, Path]] = None,
    image_path: Optional[Union[str, Path]] = None,
) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = detections_to_dict(result)
    payload["created_at"] = datetime.now().isoformat(timespec="seconds")
    if model_path is not None:
        payload["model_path"] = str(model_path)
    if image_path is not None:
        payload["image_path"] = str(image_path)
    path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
    return path
