import unittest

import numpy as np

from fakes import batched_output, flat_output
from leaf_kit.catalog import ClassCatalog
from leaf_kit.config import DetectorConfig
from leaf_kit.filtering import DetectionFilter
from leaf_kit.postprocess import Candidates, LayoutKind, OutputInterpreter
from leaf_kit.types import OutputTensor

CLASSES = ("Rust", "Sooty Mold", "Abiotic", "Cercospora")


def run(output, cfg=DetectorConfig()):
    catalog = ClassCatalog(CLASSES)
    candidates = OutputInterpreter(len(catalog)).interpret(output)
    return DetectionFilter.from_config(catalog, cfg).apply(candidates)


class TestEndToEndScenarios(unittest.TestCase):
    def test_batched_single_detection(self) -> None:
        dets = run(batched_output([[0.5, 0.5, 0.2, 0.3, 0.9, 0.1, 0.8, 0.05, 0.05]]))
        self.assertEqual(len(dets), 1)
        d = dets[0]
        self.assertEqual(d.label, "Sooty Mold")
        self.assertEqual(d.class_id, 1)
        self.assertAlmostEqual(d.x, 0.5, places=6)
        self.assertAlmostEqual(d.y, 0.5, places=6)
        self.assertAlmostEqual(d.width, 0.2, places=6)
        self.assertAlmostEqual(d.height, 0.3, places=6)
        self.assertAlmostEqual(d.score, 0.72, places=5)

    def test_low_confidence_yields_nothing(self) -> None:
        dets = run(batched_output([[0.5, 0.5, 0.2, 0.3, 0.1, 0.1, 0.8, 0.05, 0.05]]))
        self.assertEqual(dets, [])

    def test_flat_center_box(self) -> None:
        dets = run(flat_output([0.5, 0.5, 0.2, 0.3, 0.9, 0.8, 0.05, 0.05, 0.1]))
        self.assertEqual(len(dets), 1)
        d = dets[0]
        self.assertEqual(d.label, "Rust")
        self.assertAlmostEqual(d.x, 0.4, places=6)
        self.assertAlmostEqual(d.y, 0.35, places=6)
        self.assertAlmostEqual(d.width, 0.2, places=6)
        self.assertAlmostEqual(d.height, 0.3, places=6)
        self.assertAlmostEqual(d.score, 0.72, places=5)


class TestThresholds(unittest.TestCase):
    def test_low_class_score_yields_nothing(self) -> None:
        dets = run(batched_output([[0.5, 0.5, 0.2, 0.3, 0.9, 0.2, 0.1, 0.05, 0.05]]))
        self.assertEqual(dets, [])

    def test_thresholds_are_strict(self) -> None:
        out = flat_output([0.5, 0.5, 0.2, 0.3, 0.5, 0.25, 0.0, 0.0, 0.0])
        cfg = DetectorConfig(confidence_threshold=0.5, class_score_threshold=0.25)
        self.assertEqual(run(out, cfg), [])

    def test_custom_thresholds(self) -> None:
        row = [0.5, 0.5, 0.2, 0.3, 0.2, 0.1, 0.15, 0.05, 0.05]
        self.assertEqual(run(batched_output([row])), [])
        cfg = DetectorConfig(confidence_threshold=0.1, class_score_threshold=0.1)
        dets = run(batched_output([row]), cfg)
        self.assertEqual([d.label for d in dets], ["Sooty Mold"])

    def test_equal_class_scores_pick_lower_index(self) -> None:
        dets = run(batched_output([[0.5, 0.5, 0.2, 0.3, 0.9, 0.1, 0.1, 0.6, 0.6]]))
        self.assertEqual(dets[0].label, "Abiotic")

    def test_nan_class_slot_is_skipped(self) -> None:
        dets = run(batched_output([[0.5, 0.5, 0.2, 0.3, 0.9, float("nan"), 0.8, 0.05, 0.05]]))
        self.assertEqual(len(dets), 1)
        self.assertEqual(dets[0].label, "Sooty Mold")
        self.assertAlmostEqual(dets[0].score, 0.72, places=5)

    def test_all_nan_class_slots_yield_nothing(self) -> None:
        nan = float("nan")
        self.assertEqual(run(batched_output([[0.5, 0.5, 0.2, 0.3, 0.9, nan, nan, nan, nan]])), [])


class TestClampingAndOrder(unittest.TestCase):
    def test_out_of_range_values_clamp_exactly(self) -> None:
        dets = run(
            batched_output(
                [
                    [1.3, -0.2, 1.7, -0.5, 0.9, 0.9, 0.0, 0.0, 0.0],
                    [-0.2, 1.3, 0.5, 0.5, 0.9, 0.9, 0.0, 0.0, 0.0],
                ]
            )
        )
        self.assertEqual(dets[0].as_xywh(), (1.0, 0.0, 1.0, 0.0))
        self.assertEqual(dets[1].x, 0.0)
        self.assertEqual(dets[1].y, 1.0)

    def test_flat_corner_clamps_after_conversion(self) -> None:
        # cx - w/2 = -0.1 -> 0.0
        dets = run(flat_output([0.1, 0.5, 0.4, 0.2, 0.9, 0.9, 0.0, 0.0, 0.0]))
        self.assertEqual(dets[0].x, 0.0)
        self.assertAlmostEqual(dets[0].y, 0.4, places=6)

    def test_output_follows_row_order(self) -> None:
        rows = [
            [0.1, 0.1, 0.1, 0.1, 0.5, 0.0, 0.0, 0.0, 0.6],
            [0.2, 0.2, 0.1, 0.1, 0.1, 0.9, 0.0, 0.0, 0.0],  # dropped
            [0.3, 0.3, 0.1, 0.1, 0.99, 0.99, 0.0, 0.0, 0.0],
            [0.4, 0.4, 0.1, 0.1, 0.6, 0.0, 0.7, 0.0, 0.0],
        ]
        dets = run(batched_output(rows))
        self.assertEqual([d.label for d in dets], ["Cercospora", "Rust", "Sooty Mold"])
        self.assertEqual([round(d.x, 3) for d in dets], [0.1, 0.3, 0.4])

    def test_overlapping_boxes_are_not_suppressed(self) -> None:
        row = [0.5, 0.5, 0.2, 0.3, 0.9, 0.9, 0.0, 0.0, 0.0]
        dets = run(batched_output([row, row, row]))
        self.assertEqual(len(dets), 3)

    def test_random_batched_output_stays_in_range(self) -> None:
        rng = np.random.default_rng(7)
        arr = rng.uniform(-0.5, 1.5, size=(1, 200, 9)).astype(np.float32)
        dets = run(OutputTensor.from_array(arr))
        self.assertGreater(len(dets), 0)
        for d in dets:
            self.assertLessEqual(d.score, 1.0)
            self.assertGreaterEqual(d.score, 0.0)
            for v in d.as_xywh():
                self.assertGreaterEqual(v, 0.0)
                self.assertLessEqual(v, 1.0)

    def test_empty_candidates(self) -> None:
        f = DetectionFilter(ClassCatalog(CLASSES))
        self.assertEqual(f.apply(Candidates.empty(LayoutKind.FLAT_ROWS)), [])


if __name__ == "__main__":
    unittest.main()
