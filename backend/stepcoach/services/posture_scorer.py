"""
Posture Scorer Service

Computes a 0-100 posture score from the body landmarks of one frame.

All distances are divided by shoulder width so the score does not depend on
how far the dancer stands from the camera.
"""

import math
from typing import Optional

from .. import config
from ..domain.landmarks import LandmarkFrame, BodyPart
from ..domain.results import PostureResult
from ..domain.errors import MissingBodyLandmarks


class PostureScorer:
    """
    Scores spine alignment, shoulder level and arm spread.

    - Spine: horizontal offset of the nose from the hip midpoint
    - Shoulder: height difference between the two shoulders
    - Arm: elbow-to-elbow spread compared to a target spread

    Overall = floor(spine * 0.4 + shoulder * 0.4 + arm * 0.2)

    Usage:
        scorer = PostureScorer()
        result = scorer.score(frame)
        print(f"Overall: {result.overall} ({result.grade})")
    """

    def __init__(
        self,
        spine_max_deviation: float = config.SPINE_MAX_DEVIATION,
        shoulder_max_tilt: float = config.SHOULDER_MAX_TILT,
        arm_target_spread: float = config.ARM_TARGET_SPREAD,
        arm_spread_tolerance: float = config.ARM_SPREAD_TOLERANCE,
        weights: Optional[dict[str, float]] = None,
    ):
        self.spine_max_deviation = spine_max_deviation
        self.shoulder_max_tilt = shoulder_max_tilt
        self.arm_target_spread = arm_target_spread
        self.arm_spread_tolerance = arm_spread_tolerance
        self.weights = dict(weights or config.POSTURE_WEIGHTS)

    # -------------------------------------------------------------------------
    # Main Scoring Method
    # -------------------------------------------------------------------------

    def score(self, frame: LandmarkFrame) -> PostureResult:
        """
        Score the posture in a normalized frame.

        Raises:
            MissingBodyLandmarks: the frame has no body group
        """
        if not frame.has_body:
            raise MissingBodyLandmarks("Frame has no body landmarks")

        spine = self.spine_score(frame)
        shoulder = self.shoulder_score(frame)
        arm = self.arm_score(frame)

        return PostureResult(
            spine_score=spine,
            shoulder_score=shoulder,
            arm_score=arm,
            overall=self.overall_score(spine, shoulder, arm),
            timestamp_ms=frame.timestamp_ms,
        )

    def overall_score(self, spine: float, shoulder: float, arm: float) -> int:
        """Floor of the weighted sum, clamped to [0, 100]."""
        weighted_sum = (
            spine * self.weights["spine"] +
            shoulder * self.weights["shoulder"] +
            arm * self.weights["arm"]
        )
        return max(0, min(100, math.floor(weighted_sum)))

    # -------------------------------------------------------------------------
    # Sub-scores
    # -------------------------------------------------------------------------

    def spine_score(self, frame: LandmarkFrame) -> float:
        """100 when the nose sits straight above the hip midpoint."""
        nose = frame.get_landmark(BodyPart.NOSE)
        left_hip = frame.get_landmark(BodyPart.LEFT_HIP)
        right_hip = frame.get_landmark(BodyPart.RIGHT_HIP)
        width = self.shoulder_width(frame)

        hip_mid_x = (left_hip.x + right_hip.x) / 2
        deviation = abs(nose.x - hip_mid_x)

        return self._falloff(deviation, width, self.spine_max_deviation)

    def shoulder_score(self, frame: LandmarkFrame) -> float:
        """100 when both shoulders are at the same height."""
        left = frame.get_landmark(BodyPart.LEFT_SHOULDER)
        right = frame.get_landmark(BodyPart.RIGHT_SHOULDER)
        width = self.shoulder_width(frame)

        tilt = abs(left.y - right.y)

        return self._falloff(tilt, width, self.shoulder_max_tilt)

    def arm_score(self, frame: LandmarkFrame) -> float:
        """100 at the target elbow spread, falling off when narrower or wider."""
        left = frame.get_landmark(BodyPart.LEFT_ELBOW)
        right = frame.get_landmark(BodyPart.RIGHT_ELBOW)
        width = self.shoulder_width(frame)

        if width == 0:
            return 0.0

        spread = abs(left.x - right.x) / width
        miss = abs(spread - self.arm_target_spread)

        return self._falloff(miss, 1.0, self.arm_spread_tolerance)

    @staticmethod
    def shoulder_width(frame: LandmarkFrame) -> float:
        """Horizontal distance between the shoulders (the normalization unit)."""
        left = frame.get_landmark(BodyPart.LEFT_SHOULDER)
        right = frame.get_landmark(BodyPart.RIGHT_SHOULDER)
        return abs(left.x - right.x)

    # -------------------------------------------------------------------------
    # Private Helper Methods
    # -------------------------------------------------------------------------

    @staticmethod
    def _falloff(distance: float, scale: float, limit: float) -> float:
        """
        Map a distance onto 0-100: 100 at zero, 0 at ``limit`` and beyond.

        ``distance`` is divided by ``scale`` first. A zero scale or limit is a
        degenerate pose and scores 0.
        """
        if scale == 0 or limit == 0:
            return 0.0
        ratio = (distance / scale) / limit
        return max(0.0, min(100.0, 100.0 * (1.0 - ratio)))
