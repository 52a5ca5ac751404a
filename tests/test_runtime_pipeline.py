import tempfile
import unittest
from pathlib import Path

import numpy as np

from bubble_kit.config import LetterboxConfig, SegPostConfig
from bubble_kit.letterbox import letterbox_image
from bubble_kit.runtime import BubblePipeline, find_project_root, resolve_path


def fake_outputs(num_boxes: int = 8):
    raw = np.zeros((1, 37, num_boxes), dtype=np.float32)
    raw[0, 0:5, 0] = [320, 100, 80, 40, 0.9]
    raw[0, 5, 0] = 1.0
    protos = np.full((1, 32, 160, 160), -6.0, dtype=np.float32)
    protos[0, 0, 22:28, 72:88] = 6.0
    return raw, protos


class TestLetterboxImage(unittest.TestCase):
    def test_portrait_image_is_centered(self) -> None:
        img = np.full((200, 100, 3), 255, dtype=np.uint8)
        padded, transform = letterbox_image(img, 640)
        self.assertEqual(padded.shape, (640, 640, 3))
        self.assertAlmostEqual(transform.scale, 3.2)
        self.assertAlmostEqual(transform.offset_x, 160.0)
        self.assertAlmostEqual(transform.offset_y, 0.0)
        self.assertTrue(np.array_equal(padded[320, 10], [128, 128, 128]))
        self.assertTrue(np.array_equal(padded[320, 320], [255, 255, 255]))
        self.assertTrue(np.array_equal(padded[320, 630], [128, 128, 128]))

    def test_rejects_grayscale(self) -> None:
        with self.assertRaises(ValueError):
            letterbox_image(np.zeros((10, 10), dtype=np.uint8))


class TestBubblePipeline(unittest.TestCase):
    def test_preprocess_and_decode(self) -> None:
        seen = {}

        def infer(blob):
            seen["shape"] = blob.shape
            seen["dtype"] = blob.dtype
            seen["max"] = float(blob.max())
            return fake_outputs()

        pipe = BubblePipeline(infer, post_cfg=SegPostConfig(conf_threshold=0.5))
        img = np.full((200, 100, 3), 255, dtype=np.uint8)
        result = pipe(img)

        self.assertEqual(seen["shape"], (1, 3, 640, 640))
        self.assertEqual(seen["dtype"], np.float32)
        self.assertLessEqual(seen["max"], 1.0)
        self.assertEqual((result.image_width, result.image_height), (100, 200))
        self.assertEqual(len(result.detections), 1)
        det = result.detections[0]
        self.assertAlmostEqual(det.bbox.x1, 37.5, places=4)
        self.assertIsNotNone(det.polygon)
        self.assertGreaterEqual(result.inference_time_ms, 0.0)

    def test_box_only_model(self) -> None:
        pipe = BubblePipeline(lambda blob: (fake_outputs()[0], None))
        result = pipe(np.zeros((50, 50, 3), dtype=np.uint8))
        self.assertEqual(len(result.detections), 1)
        self.assertIsNone(result.detections[0].polygon)

    def test_rejects_bad_image(self) -> None:
        pipe = BubblePipeline(lambda blob: fake_outputs())
        with self.assertRaises(ValueError):
            pipe(np.zeros((10, 10, 4), dtype=np.uint8))
        with self.assertRaises(TypeError):
            pipe(None)

    def test_mismatched_sizes_rejected(self) -> None:
        with self.assertRaises(ValueError):
            BubblePipeline(lambda blob: fake_outputs(), letterbox_cfg=LetterboxConfig(input_size=320))


class TestPathResolution(unittest.TestCase):
    def test_relative_paths_use_marker_root(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        root = Path(tmpdir.name).resolve()
        (root / "pyproject.toml").write_text("", encoding="utf-8")
        nested = root / "a" / "b"
        nested.mkdir(parents=True)

        self.assertEqual(find_project_root(nested), root)
        self.assertEqual(resolve_path("Models/m.onnx", root=root), root / "Models" / "m.onnx")
        self.assertEqual(resolve_path(root / "x.onnx"), root / "x.onnx")


if __name__ == "__main__":
    unittest.main()
