import itertools
import unittest

import numpy as np

from bubble_kit.nms import NMSConfig, box_iou, nms, suppress
from bubble_kit.types import BoxXYXY, CandidateDetection


def cand(box, conf: float) -> CandidateDetection:
    return CandidateDetection(bbox=BoxXYXY(*box), confidence=conf, mask_coeffs=np.zeros(32, dtype=np.float32))


class TestBoxIou(unittest.TestCase):
    def test_known_overlap(self) -> None:
        # intersection 60, union 100
        self.assertAlmostEqual(box_iou(BoxXYXY(0, 0, 10, 10), BoxXYXY(0, 0, 10, 6)), 0.6)

    def test_disjoint(self) -> None:
        self.assertEqual(box_iou(BoxXYXY(0, 0, 10, 10), BoxXYXY(20, 20, 30, 30)), 0.0)

    def test_degenerate_boxes_do_not_produce_nan(self) -> None:
        iou = box_iou(BoxXYXY(5, 5, 5, 5), BoxXYXY(5, 5, 5, 5))
        self.assertEqual(iou, 0.0)
        self.assertEqual(box_iou(BoxXYXY(0, 0, 0, 10), BoxXYXY(0, 0, 10, 10)), 0.0)


class TestNms(unittest.TestCase):
    def test_iou_above_threshold_keeps_higher_confidence(self) -> None:
        boxes = np.array([[0, 0, 10, 6], [0, 0, 10, 10]], dtype=np.float32)
        scores = np.array([0.8, 0.9], dtype=np.float32)
        keep = nms(boxes, scores, NMSConfig(iou_threshold=0.5))
        self.assertEqual(keep.tolist(), [1])

    def test_iou_below_threshold_keeps_both(self) -> None:
        boxes = np.array([[0, 0, 10, 6], [0, 0, 10, 10]], dtype=np.float32)
        scores = np.array([0.8, 0.9], dtype=np.float32)
        keep = nms(boxes, scores, NMSConfig(iou_threshold=0.7))
        self.assertEqual(keep.tolist(), [1, 0])

    def test_iou_equal_to_threshold_is_kept(self) -> None:
        # intersection 50, union 100
        boxes = np.array([[0, 0, 10, 10], [0, 0, 10, 5]], dtype=np.float64)
        keep = nms(boxes, np.array([0.9, 0.8]), NMSConfig(iou_threshold=0.5))
        self.assertEqual(keep.tolist(), [0, 1])

    def test_degenerate_boxes_survive_without_nan(self) -> None:
        boxes = np.array([[5, 5, 5, 5], [5, 5, 5, 5], [0, 0, 10, 10]], dtype=np.float64)
        keep = nms(boxes, np.array([0.9, 0.8, 0.7]), NMSConfig(iou_threshold=0.5))
        self.assertEqual(keep.tolist(), [0, 1, 2])

    def test_equal_scores_prefer_earlier_index(self) -> None:
        boxes = np.array([[0, 0, 10, 10], [1, 1, 10, 10]], dtype=np.float64)
        keep = nms(boxes, np.array([0.5, 0.5]), NMSConfig(iou_threshold=0.5))
        self.assertEqual(keep.tolist(), [0])

    def test_max_detections(self) -> None:
        boxes = np.array([[i * 20, 0, i * 20 + 10, 10] for i in range(5)], dtype=np.float64)
        scores = np.linspace(0.5, 0.9, 5)
        keep = nms(boxes, scores, NMSConfig(iou_threshold=0.5, max_detections=2))
        self.assertEqual(keep.tolist(), [4, 3])

    def test_empty(self) -> None:
        keep = nms(np.zeros((0, 4)), np.zeros((0,)), NMSConfig())
        self.assertEqual(keep.size, 0)


class TestSuppress(unittest.TestCase):
    def test_survivors_sorted_and_non_overlapping(self) -> None:
        rng = np.random.default_rng(3)
        cands = []
        for _ in range(40):
            x, y = rng.uniform(0, 200, size=2)
            w, h = rng.uniform(5, 60, size=2)
            cands.append(cand((x, y, x + w, y + h), float(rng.uniform(0.3, 1.0))))

        kept = suppress(cands, NMSConfig(iou_threshold=0.5))
        self.assertGreater(len(kept), 0)
        confs = [c.confidence for c in kept]
        self.assertEqual(confs, sorted(confs, reverse=True))
        for a, b in itertools.combinations(kept, 2):
            self.assertLessEqual(box_iou(a.bbox, b.bbox), 0.5 + 1e-9)

    def test_returns_candidate_objects(self) -> None:
        a = cand((0, 0, 10, 10), 0.9)
        b = cand((0, 0, 10, 6), 0.8)
        kept = suppress([b, a], NMSConfig(iou_threshold=0.5))
        self.assertEqual(len(kept), 1)
        self.assertIs(kept[0], a)
        self.assertEqual(suppress([], NMSConfig()), [])


if __name__ == "__main__":
    unittest.main()
