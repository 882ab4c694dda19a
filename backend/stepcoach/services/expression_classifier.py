"""
Expression Classifier Service

Derives a discrete expression label from face mesh landmarks using three
geometric ratios:

- mouth opening: lip gap / face height
- smile width: mouth corner distance / face width
- brow distance: inner brow gap / face width

Labels are checked in a fixed priority order (mouth, then smile, then brow);
the first threshold crossed wins.
"""

from typing import Optional

import numpy as np

from .. import config
from ..domain.landmarks import LandmarkFrame, FacePoint, Landmark
from ..domain.results import ExpressionLabel, ExpressionResult, ExpressionSignals
from ..domain.errors import MissingFaceLandmarks


REQUIRED_FACE_POINTS = max(point.value for point in FacePoint) + 1


class ExpressionClassifier:
    """
    Classifies Neutral / Surprise / Joy / Anger from a face mesh.

    Usage:
        classifier = ExpressionClassifier()
        result = classifier.classify(frame)
        print(result.label.value, result.intensity)
    """

    def __init__(
        self,
        mouth_open_threshold: float = config.MOUTH_OPEN_THRESHOLD,
        smile_width_threshold: float = config.SMILE_WIDTH_THRESHOLD,
        brow_anger_threshold: float = config.BROW_ANGER_THRESHOLD,
    ):
        self.mouth_open_threshold = mouth_open_threshold
        self.smile_width_threshold = smile_width_threshold
        self.brow_anger_threshold = brow_anger_threshold

    def classify(self, frame: LandmarkFrame) -> ExpressionResult:
        """
        Label the expression in a normalized frame.

        Raises:
            MissingFaceLandmarks: no face group, or too few points for the
                face mesh indices we read
        """
        signals = self.measure(frame)

        if signals is None:
            # Collapsed face geometry, nothing to measure
            return ExpressionResult(
                label=ExpressionLabel.NEUTRAL,
                intensity=0.0,
                timestamp_ms=frame.timestamp_ms,
            )

        label, intensity = self.label_for(signals)

        return ExpressionResult(
            label=label,
            intensity=intensity,
            timestamp_ms=frame.timestamp_ms,
            signals=signals,
        )

    def label_for(self, signals: ExpressionSignals) -> tuple[ExpressionLabel, float]:
        """Apply the priority rules to a set of ratios."""
        if signals.mouth_open_ratio > self.mouth_open_threshold:
            return ExpressionLabel.SURPRISE, signals.mouth_open_ratio
        if signals.smile_width_ratio > self.smile_width_threshold:
            return ExpressionLabel.JOY, signals.smile_width_ratio
        if signals.brow_distance_ratio < self.brow_anger_threshold:
            return ExpressionLabel.ANGER, signals.brow_distance_ratio
        return ExpressionLabel.NEUTRAL, 0.0

    def measure(self, frame: LandmarkFrame) -> Optional[ExpressionSignals]:
        """
        Compute the three face ratios.

        Returns:
            ExpressionSignals, or None if face width or height is zero
        """
        if not frame.has_face:
            raise MissingFaceLandmarks("Frame has no face landmarks")
        if len(frame.face) < REQUIRED_FACE_POINTS:
            raise MissingFaceLandmarks(
                f"Face mesh needs at least {REQUIRED_FACE_POINTS} points, got {len(frame.face)}"
            )

        face_height = self._distance(frame, FacePoint.FOREHEAD, FacePoint.CHIN)
        face_width = self._distance(frame, FacePoint.FACE_LEFT, FacePoint.FACE_RIGHT)

        if face_height == 0 or face_width == 0:
            return None

        mouth_gap = self._distance(frame, FacePoint.UPPER_LIP, FacePoint.LOWER_LIP)
        mouth_width = self._distance(frame, FacePoint.MOUTH_LEFT, FacePoint.MOUTH_RIGHT)
        brow_gap = self._distance(frame, FacePoint.LEFT_INNER_BROW, FacePoint.RIGHT_INNER_BROW)

        return ExpressionSignals(
            mouth_open_ratio=mouth_gap / face_height,
            smile_width_ratio=mouth_width / face_width,
            brow_distance_ratio=brow_gap / face_width,
        )

    # -------------------------------------------------------------------------
    # Private Helper Methods
    # -------------------------------------------------------------------------

    @staticmethod
    def _distance(frame: LandmarkFrame, a: FacePoint, b: FacePoint) -> float:
        """Image-plane distance between two face mesh points."""
        p1: Landmark = frame.get_face_point(a)
        p2: Landmark = frame.get_face_point(b)
        return float(np.linalg.norm(np.array([p1.x - p2.x, p1.y - p2.y])))
