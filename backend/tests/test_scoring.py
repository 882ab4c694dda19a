"""
Scoring tests.

Covers the landmark normalizer, posture scorer and expression classifier
using synthetic landmark frames.
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import math
import unittest

from tests.fixtures.synthetic_landmarks import make_body, make_face, make_frame


class TestLandmarkNormalizer(unittest.TestCase):
    """Validate frame validation and cleaning."""

    def setUp(self):
        from stepcoach.services import LandmarkNormalizer
        self.normalizer = LandmarkNormalizer()

    def test_valid_frame_keeps_all_groups(self):
        """A full frame normalizes to 33 body and 468 face points."""
        frame = self.normalizer.normalize(make_frame(timestamp_ms=1500, frame_number=45))
        self.assertEqual(len(frame.body), 33)
        self.assertEqual(len(frame.face), 468)
        self.assertIsNone(frame.left_hand)
        self.assertEqual(frame.timestamp_ms, 1500)
        self.assertEqual(frame.frame_number, 45)

    def test_wrong_body_count_is_invalid(self):
        """Body present with 32 points should raise InvalidFrame."""
        from stepcoach.domain import InvalidFrame
        raw = make_frame(body=make_body()[:32])
        with self.assertRaises(InvalidFrame):
            self.normalizer.normalize(raw)

    def test_non_finite_coordinate_is_invalid(self):
        """NaN or infinity anywhere should raise InvalidFrame."""
        from stepcoach.domain import InvalidFrame
        for bad in (float("nan"), float("inf")):
            body = make_body()
            body[5] = {"x": bad, "y": 0.5, "z": 0.0, "visibility": 0.9}
            with self.assertRaises(InvalidFrame):
                self.normalizer.normalize(make_frame(body=body))

    def test_non_finite_face_point_is_invalid(self):
        from stepcoach.domain import InvalidFrame
        face = make_face()
        face[100] = {"x": 0.5, "y": float("nan")}
        with self.assertRaises(InvalidFrame):
            self.normalizer.normalize(make_frame(face=face))

    def test_all_groups_absent_is_invalid(self):
        """A frame with no landmark groups at all is rejected."""
        from stepcoach.domain import InvalidFrame
        with self.assertRaises(InvalidFrame):
            self.normalizer.normalize(make_frame(with_body=False, with_face=False))

    def test_empty_groups_count_as_absent(self):
        from stepcoach.domain import InvalidFrame
        with self.assertRaises(InvalidFrame):
            self.normalizer.normalize({"body": [], "face": [], "timestamp_ms": 0})

    def test_face_only_frame_is_valid(self):
        """No body but a face is still a usable frame."""
        frame = self.normalizer.normalize(make_frame(with_body=False))
        self.assertIsNone(frame.body)
        self.assertTrue(frame.has_face)

    def test_too_many_hand_points_is_invalid(self):
        from stepcoach.domain import InvalidFrame
        raw = make_frame()
        raw["left_hand"] = [{"x": 0.1, "y": 0.1}] * 22
        with self.assertRaises(InvalidFrame):
            self.normalizer.normalize(raw)

    def test_visibility_is_clamped(self):
        body = make_body()
        body[0] = {"x": 0.5, "y": 0.125, "z": 0.0, "visibility": 1.2}
        body[1] = {"x": 0.5, "y": 0.125, "z": 0.0, "visibility": -0.1}
        frame = self.normalizer.normalize(make_frame(body=body))
        self.assertEqual(frame.body[0].visibility, 1.0)
        self.assertEqual(frame.body[1].visibility, 0.0)

    def test_sequence_points_are_accepted(self):
        """Points may be (x, y), (x, y, z) or (x, y, z, visibility) sequences."""
        body = [(0.5, 0.5)] * 11 + [(0.375, 0.25, 0.0)] + [(0.625, 0.25, 0.0, 0.8)] * 21
        frame = self.normalizer.normalize({"body": body})
        self.assertEqual(frame.body[0].z, 0.0)
        self.assertEqual(frame.body[0].visibility, 1.0)
        self.assertEqual(frame.body[12].visibility, 0.8)

    def test_missing_coordinate_is_invalid(self):
        from stepcoach.domain import InvalidFrame
        body = make_body()
        body[3] = {"y": 0.5}
        with self.assertRaises(InvalidFrame):
            self.normalizer.normalize(make_frame(body=body))

    def test_landmark_frame_passes_through(self):
        """An already built LandmarkFrame is validated the same way."""
        first = self.normalizer.normalize(make_frame())
        again = self.normalizer.normalize(first)
        self.assertEqual(first, again)

    def test_unsupported_type_is_invalid(self):
        from stepcoach.domain import InvalidFrame
        with self.assertRaises(InvalidFrame):
            self.normalizer.normalize("not a frame")


class TestPostureScorer(unittest.TestCase):
    """Validate posture sub-scores and the weighted overall score."""

    def setUp(self):
        from stepcoach.services import PostureScorer, normalize_frame
        self.normalize = normalize_frame
        # Target spread 2.0 matches the fixture elbows, so arm scores 100
        self.scorer = PostureScorer(arm_target_spread=2.0)

    def _score(self, **body_kwargs):
        return self.scorer.score(self.normalize(make_frame(body=make_body(**body_kwargs))))

    def test_ideal_pose_scores_100(self):
        result = self._score()
        self.assertEqual(result.spine_score, 100.0)
        self.assertEqual(result.shoulder_score, 100.0)
        self.assertEqual(result.arm_score, 100.0)
        self.assertEqual(result.overall, 100)
        self.assertEqual(result.grade, "A")

    def test_spine_deviation_halves_score(self):
        """Nose offset of a quarter shoulder width is half the max deviation."""
        result = self._score(nose_x=0.5625)
        self.assertEqual(result.spine_score, 50.0)

    def test_spine_deviation_beyond_max_scores_zero(self):
        result = self._score(nose_x=0.9)
        self.assertEqual(result.spine_score, 0.0)

    def test_shoulder_tilt_reduces_score(self):
        result = self._score(right_shoulder=(0.625, 0.28125))
        self.assertEqual(result.shoulder_score, 50.0)

    def test_arm_score_peaks_at_target_and_falls_both_ways(self):
        ideal = self._score()
        narrow = self._score(left_elbow_x=0.375, right_elbow_x=0.625)
        wide = self._score(left_elbow_x=0.0, right_elbow_x=1.0)
        self.assertEqual(ideal.arm_score, 100.0)
        self.assertLess(narrow.arm_score, ideal.arm_score)
        self.assertLess(wide.arm_score, ideal.arm_score)

    def test_overall_is_floor_of_weighted_sum(self):
        """overall == floor(spine*0.4 + shoulder*0.4 + arm*0.2) for varied poses."""
        poses = [
            {},
            {"nose_x": 0.53},
            {"nose_x": 0.41, "right_shoulder": (0.625, 0.27)},
            {"left_elbow_x": 0.3, "right_elbow_x": 0.66},
            {"nose_x": 0.7, "right_shoulder": (0.61, 0.4), "left_elbow_x": 0.45},
        ]
        for pose in poses:
            result = self._score(**pose)
            expected = math.floor(
                result.spine_score * 0.4 + result.shoulder_score * 0.4 + result.arm_score * 0.2
            )
            self.assertEqual(result.overall, expected, pose)
            self.assertGreaterEqual(result.overall, 0)
            self.assertLessEqual(result.overall, 100)

    def test_degenerate_pose_scores_zero_not_error(self):
        """Shoulders stacked on one x (zero width) yields 0 sub-scores."""
        result = self._score(left_shoulder=(0.5, 0.25), right_shoulder=(0.5, 0.3))
        self.assertEqual(result.spine_score, 0.0)
        self.assertEqual(result.shoulder_score, 0.0)
        self.assertEqual(result.arm_score, 0.0)
        self.assertEqual(result.overall, 0)

    def test_zero_configured_limit_scores_zero(self):
        from stepcoach.services import PostureScorer
        scorer = PostureScorer(spine_max_deviation=0, arm_target_spread=2.0)
        result = scorer.score(self.normalize(make_frame()))
        self.assertEqual(result.spine_score, 0.0)
        self.assertEqual(result.overall, 60)

    def test_missing_body_raises(self):
        from stepcoach.domain import MissingBodyLandmarks
        frame = self.normalize(make_frame(with_body=False))
        with self.assertRaises(MissingBodyLandmarks):
            self.scorer.score(frame)

    def test_timestamp_is_carried(self):
        result = self.scorer.score(self.normalize(make_frame(timestamp_ms=4200)))
        self.assertEqual(result.timestamp_ms, 4200)


class TestExpressionClassifier(unittest.TestCase):
    """Validate expression ratios and the priority order."""

    def setUp(self):
        from stepcoach.services import ExpressionClassifier, normalize_frame
        self.normalize = normalize_frame
        self.classifier = ExpressionClassifier()

    def _classify(self, **face_kwargs):
        return self.classifier.classify(self.normalize(make_frame(face=make_face(**face_kwargs))))

    def test_neutral_face(self):
        from stepcoach.domain import ExpressionLabel
        result = self._classify()
        self.assertEqual(result.label, ExpressionLabel.NEUTRAL)
        self.assertEqual(result.intensity, 0.0)

    def test_ratios_match_geometry(self):
        result = self._classify(mouth_open=0.05, smile=0.45, brow=0.2)
        self.assertAlmostEqual(result.signals.mouth_open_ratio, 0.05, places=6)
        self.assertAlmostEqual(result.signals.smile_width_ratio, 0.45, places=6)
        self.assertAlmostEqual(result.signals.brow_distance_ratio, 0.2, places=6)

    def test_open_mouth_is_surprise(self):
        from stepcoach.domain import ExpressionLabel
        result = self._classify(mouth_open=0.12)
        self.assertEqual(result.label, ExpressionLabel.SURPRISE)
        self.assertAlmostEqual(result.intensity, 0.12, places=6)

    def test_wide_mouth_is_joy(self):
        from stepcoach.domain import ExpressionLabel
        result = self._classify(smile=0.56)
        self.assertEqual(result.label, ExpressionLabel.JOY)
        self.assertAlmostEqual(result.intensity, 0.56, places=6)

    def test_close_brows_is_anger(self):
        from stepcoach.domain import ExpressionLabel
        result = self._classify(brow=0.08)
        self.assertEqual(result.label, ExpressionLabel.ANGER)
        self.assertAlmostEqual(result.intensity, 0.08, places=6)

    def test_surprise_wins_over_joy(self):
        """Mouth-open 0.10 and smile 0.6 both cross: Surprise with intensity 0.10."""
        from stepcoach.domain import ExpressionLabel
        result = self._classify(mouth_open=0.10, smile=0.6)
        self.assertEqual(result.label, ExpressionLabel.SURPRISE)
        self.assertAlmostEqual(result.intensity, 0.10, places=6)

    def test_joy_wins_over_anger(self):
        from stepcoach.domain import ExpressionLabel
        result = self._classify(smile=0.6, brow=0.05)
        self.assertEqual(result.label, ExpressionLabel.JOY)

    def test_missing_face_raises(self):
        from stepcoach.domain import MissingFaceLandmarks
        with self.assertRaises(MissingFaceLandmarks):
            self.classifier.classify(self.normalize(make_frame(with_face=False)))

    def test_short_face_mesh_raises(self):
        from stepcoach.domain import MissingFaceLandmarks
        frame = self.normalize(make_frame(face=make_face()[:100]))
        with self.assertRaises(MissingFaceLandmarks):
            self.classifier.classify(frame)

    def test_collapsed_face_is_neutral(self):
        from stepcoach.domain import ExpressionLabel
        flat = [{"x": 0.5, "y": 0.5}] * 468
        result = self.classifier.classify(self.normalize(make_frame(face=flat)))
        self.assertEqual(result.label, ExpressionLabel.NEUTRAL)
        self.assertEqual(result.intensity, 0.0)


if __name__ == "__main__":
    unittest.main()
