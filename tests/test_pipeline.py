import unittest

import cv2
import numpy as np

from fakes import FakeGateway, batched_output, flat_output
from leaf_kit.catalog import ClassCatalog
from leaf_kit.config import DetectorConfig
from leaf_kit.errors import DecodeError, InferenceError, ModelLoadError, OutputFormatError
from leaf_kit.postprocess import LayoutKind
from leaf_kit.runtime import DetectionPipeline, image_identity
from leaf_kit.types import RawImage

ROW = [0.5, 0.5, 0.2, 0.3, 0.9, 0.1, 0.8, 0.05, 0.05]


def _jpeg(width: int = 40, height: int = 24) -> bytes:
    bgr = np.zeros((height, width, 3), dtype=np.uint8)
    bgr[:, : width // 2] = (0, 128, 0)
    ok, buf = cv2.imencode(".jpg", bgr)
    assert ok
    return buf.tobytes()


class TestDetectionPipeline(unittest.TestCase):
    def setUp(self) -> None:
        self.cfg = DetectorConfig(input_size=32)

    def test_bytes_to_detections(self) -> None:
        gw = FakeGateway({"output": batched_output([ROW])})
        pipe = DetectionPipeline(gw, cfg=self.cfg)
        result = pipe(_jpeg())

        self.assertEqual(len(result), 1)
        self.assertEqual(result.detections[0].label, "Sooty Mold")
        self.assertAlmostEqual(result.detections[0].score, 0.72, places=5)
        self.assertEqual(result.layout, LayoutKind.BATCHED_ROWS)

        self.assertEqual(len(gw.calls), 1)
        feeds = gw.calls[0]
        self.assertEqual(list(feeds), ["images"])
        blob = feeds["images"]
        self.assertEqual(blob.shape, (1, 3, 32, 32))
        self.assertEqual(blob.dtype, np.float32)

    def test_raw_image_input_and_custom_input_name(self) -> None:
        gw = FakeGateway({"predictions": flat_output([0.5, 0.5, 0.2, 0.3, 0.9, 0.8, 0.05, 0.05, 0.1])})
        cfg = DetectorConfig(input_size=8, input_name="input_0")
        img = RawImage(width=8, height=8, data=np.full((8, 8, 4), 255, dtype=np.uint8))
        result = DetectionPipeline(gw, cfg=cfg)(img)

        self.assertEqual(list(gw.calls[0]), ["input_0"])
        self.assertTrue(np.all(gw.calls[0]["input_0"] == 1.0))
        self.assertEqual([d.label for d in result], ["Rust"])
        self.assertEqual(result.layout, LayoutKind.FLAT_ROWS)

    def test_result_is_tagged_with_image_identity(self) -> None:
        gw = FakeGateway({"output": batched_output([ROW])})
        pipe = DetectionPipeline(gw, cfg=self.cfg)
        data = _jpeg()
        self.assertEqual(pipe(data).image_id, image_identity(data))
        self.assertEqual(pipe(data, image_id="photo-7").image_id, "photo-7")
        self.assertNotEqual(image_identity(data), image_identity(_jpeg(width=41)))

    def test_empty_result_is_not_an_error(self) -> None:
        low = list(ROW)
        low[4] = 0.1
        gw = FakeGateway({"output": batched_output([low])})
        result = DetectionPipeline(gw, cfg=self.cfg)(_jpeg())
        self.assertTrue(result.is_empty)

    def test_custom_catalog(self) -> None:
        gw = FakeGateway({"output": batched_output([[0.1, 0.1, 0.2, 0.2, 0.9, 0.1, 0.9]])})
        pipe = DetectionPipeline(gw, catalog=ClassCatalog(("healthy", "miner")), cfg=self.cfg)
        self.assertEqual([d.label for d in pipe(_jpeg())], ["miner"])

    def test_decode_error_propagates_without_inference(self) -> None:
        gw = FakeGateway({"output": batched_output([ROW])})
        with self.assertRaises(DecodeError):
            DetectionPipeline(gw, cfg=self.cfg)(b"not an image")
        self.assertEqual(gw.calls, [])

    def test_gateway_errors_propagate(self) -> None:
        for err in (ModelLoadError("gone"), InferenceError("boom")):
            gw = FakeGateway(error=err)
            with self.assertRaises(type(err)):
                DetectionPipeline(gw, cfg=self.cfg)(_jpeg())

    def test_unexpected_gateway_error_is_wrapped(self) -> None:
        gw = FakeGateway(error=RuntimeError("CUDA out of memory"))
        with self.assertRaises(InferenceError) as ctx:
            DetectionPipeline(gw, cfg=self.cfg)(_jpeg())
        self.assertIsInstance(ctx.exception.__cause__, RuntimeError)

    def test_pipeline_usable_after_failure(self) -> None:
        gw = FakeGateway(error=InferenceError("boom"))
        pipe = DetectionPipeline(gw, cfg=self.cfg)
        with self.assertRaises(InferenceError):
            pipe(_jpeg())
        gw.error = None
        gw.outputs = {"output": batched_output([ROW])}
        self.assertEqual(len(pipe(_jpeg())), 1)

    def test_no_outputs_is_format_error(self) -> None:
        with self.assertRaises(OutputFormatError):
            DetectionPipeline(FakeGateway({}), cfg=self.cfg)(_jpeg())

    def test_close_releases_gateway(self) -> None:
        gw = FakeGateway({"output": batched_output([ROW])})
        with DetectionPipeline(gw, cfg=self.cfg) as pipe:
            pipe(_jpeg())
        self.assertTrue(gw.closed)


if __name__ == "__main__":
    unittest.main()
