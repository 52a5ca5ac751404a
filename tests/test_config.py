import json
import tempfile
import unittest
from pathlib import Path

from bubble_kit.config import SegPostConfig, load_seg_config


class TestSegPostConfig(unittest.TestCase):
    def test_defaults(self) -> None:
        cfg = SegPostConfig()
        self.assertEqual(cfg.conf_threshold, 0.3)
        self.assertEqual(cfg.nms_threshold, 0.5)
        self.assertEqual(cfg.mask_threshold, 0.5)
        self.assertEqual(cfg.input_size, 640)
        self.assertIsNone(cfg.max_detections)

    def test_out_of_range_thresholds_rejected(self) -> None:
        with self.assertRaises(ValueError):
            SegPostConfig(conf_threshold=1.5)
        with self.assertRaises(ValueError):
            SegPostConfig(nms_threshold=-0.1)
        with self.assertRaises(ValueError):
            SegPostConfig(polygon_stride=0)
        with self.assertRaises(ValueError):
            SegPostConfig(max_detections=0)


class TestLoadSegConfig(unittest.TestCase):
    def _write(self, payload) -> Path:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        path = Path(tmpdir.name) / "seg.json"
        path.write_text(json.dumps(payload), encoding="utf-8")
        return path

    def test_load_ok(self) -> None:
        cfg = load_seg_config(self._write({"conf_threshold": 0.5, "nms_threshold": 0.4, "max_detections": 20}))
        self.assertEqual(cfg.conf_threshold, 0.5)
        self.assertEqual(cfg.nms_threshold, 0.4)
        self.assertEqual(cfg.max_detections, 20)
        self.assertEqual(cfg.mask_threshold, 0.5)

    def test_integer_threshold_accepted(self) -> None:
        cfg = load_seg_config(self._write({"conf_threshold": 1}))
        self.assertEqual(cfg.conf_threshold, 1.0)

    def test_null_max_detections(self) -> None:
        cfg = load_seg_config(self._write({"max_detections": None}))
        self.assertIsNone(cfg.max_detections)

    def test_unknown_keys_rejected(self) -> None:
        with self.assertRaises(ValueError):
            load_seg_config(self._write({"conf_threshold": 0.5, "extra": 1}))

    def test_wrong_types_rejected(self) -> None:
        with self.assertRaises(ValueError):
            load_seg_config(self._write({"conf_threshold": "high"}))
        with self.assertRaises(ValueError):
            load_seg_config(self._write({"input_size": 640.5}))
        with self.assertRaises(ValueError):
            load_seg_config(self._write({"polygon_stride": True}))

    def test_non_object_rejected(self) -> None:
        with self.assertRaises(ValueError):
            load_seg_config(self._write([1, 2, 3]))

    def test_invalid_json_rejected(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        path = Path(tmpdir.name) / "seg.json"
        path.write_text("{not json", encoding="utf-8")
        with self.assertRaises(ValueError):
            load_seg_config(path)

    def test_missing_file(self) -> None:
        with self.assertRaises(FileNotFoundError):
            load_seg_config(Path("/nonexistent/seg.json"))


if __name__ == "__main__":
    unittest.main()
