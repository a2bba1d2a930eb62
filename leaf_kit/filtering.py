from __future__ import annotations

import logging
from typing import List

import numpy as np

from .catalog import ClassCatalog
from .config import DEFAULT_CLASS_SCORE_THRESHOLD, DEFAULT_CONFIDENCE_THRESHOLD, DetectorConfig
from .postprocess import Candidates
from .types import Detection

logger = logging.getLogger(__name__)


class DetectionFilter:
    """
    Thresholds candidates and turns the survivors into `Detection` records.

    A candidate is kept when its confidence and its best class score are both strictly
    above their thresholds. Geometry is clamped to [0, 1] field by field and the
    score is confidence * class score. Row order is preserved and overlapping boxes
    are not suppressed.
    """

    def __init__(
        self,
        catalog: ClassCatalog,
        confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
        class_score_threshold: float = DEFAULT_CLASS_SCORE_THRESHOLD,
    ):
        self.catalog = catalog
        self.confidence_threshold = float(confidence_threshold)
        self.class_score_threshold = float(class_score_threshold)

    @classmethod
    def from_config(cls, catalog: ClassCatalog, cfg: DetectorConfig) -> "DetectionFilter":
        return cls(
            catalog,
            confidence_threshold=cfg.confidence_threshold,
            class_score_threshold=cfg.class_score_threshold,
        )

    def apply(self, candidates: Candidates) -> List[Detection]:
        if len(candidates) == 0:
            return []

        keep = (candidates.confidences > self.confidence_threshold) & (
            candidates.class_scores > self.class_score_threshold
        )
        idx = np.flatnonzero(keep)
        if idx.size == 0:
            logger.debug("No candidate passed thresholds (%d rows)", len(candidates))
            return []

        boxes = np.clip(candidates.boxes[idx], 0.0, 1.0)
        scores = np.clip(candidates.confidences[idx] * candidates.class_scores[idx], 0.0, 1.0)
        class_ids = candidates.class_ids[idx]

        detections = [
            Detection(
                x=float(x),
                y=float(y),
                width=float(w),
                height=float(h),
                label=self.catalog[int(cls_id)],
                score=float(score),
                class_id=int(cls_id),
            )
            for (x, y, w, h), score, cls_id in zip(boxes, scores, class_ids)
        ]
        logger.debug("%d of %d candidates kept", len(detections), len(candidates))
        return detections
