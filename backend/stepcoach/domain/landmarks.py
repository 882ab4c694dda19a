"""
Landmark Domain Models

Data structures for the body, hand and face landmarks pushed to us by the
external pose-detection engine (MediaPipe Holistic layout).

MediaPipe Pose returns 33 body landmarks:
https://developers.google.com/mediapipe/solutions/vision/pose_landmarker
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional


class BodyPart(IntEnum):
    """
    MediaPipe Pose landmark indices.

    These map directly to MediaPipe's 33-point pose model.
    """
    # Face
    NOSE = 0
    LEFT_EYE_INNER = 1
    LEFT_EYE = 2
    LEFT_EYE_OUTER = 3
    RIGHT_EYE_INNER = 4
    RIGHT_EYE = 5
    RIGHT_EYE_OUTER = 6
    LEFT_EAR = 7
    RIGHT_EAR = 8
    MOUTH_LEFT = 9
    MOUTH_RIGHT = 10

    # Upper body
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16

    # Hands
    LEFT_PINKY = 17
    RIGHT_PINKY = 18
    LEFT_INDEX = 19
    RIGHT_INDEX = 20
    LEFT_THUMB = 21
    RIGHT_THUMB = 22

    # Lower body
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28

    # Feet
    LEFT_HEEL = 29
    RIGHT_HEEL = 30
    LEFT_FOOT_INDEX = 31
    RIGHT_FOOT_INDEX = 32


class FacePoint(IntEnum):
    """MediaPipe Face Mesh indices used for expression signals."""
    FOREHEAD = 10
    UPPER_LIP = 13
    LOWER_LIP = 14
    MOUTH_LEFT = 61
    MOUTH_RIGHT = 291
    LEFT_INNER_BROW = 107
    RIGHT_INNER_BROW = 336
    CHIN = 152
    FACE_LEFT = 234
    FACE_RIGHT = 454


@dataclass(frozen=True)
class Landmark:
    """
    A single tracked point with 3D coordinates and visibility.

    Attributes:
        x: Horizontal position (0.0 = left edge, 1.0 = right edge)
        y: Vertical position (0.0 = top edge, 1.0 = bottom edge)
        z: Depth (smaller = closer to camera)
        visibility: Confidence score (0.0 to 1.0)

    Note:
        Coordinates are normalized to image dimensions, but the detector may
        report points slightly outside the frame, so no range is enforced.
    """
    x: float
    y: float
    z: float = 0.0
    visibility: float = 1.0


@dataclass(frozen=True)
class LandmarkFrame:
    """
    One complete set of landmarks captured at one instant.

    Any group may be None when the detector did not find it. When present,
    ``body`` holds exactly 33 points indexed by :class:`BodyPart`.

    Attributes:
        body: 33 body landmarks
        left_hand: up to 21 hand landmarks
        right_hand: up to 21 hand landmarks
        face: face mesh landmarks (468, or 478 with iris refinement)
        timestamp_ms: capture time in milliseconds
        frame_number: sequential frame number from the detector
    """
    body: Optional[tuple[Landmark, ...]] = None
    left_hand: Optional[tuple[Landmark, ...]] = None
    right_hand: Optional[tuple[Landmark, ...]] = None
    face: Optional[tuple[Landmark, ...]] = None
    timestamp_ms: int = 0
    frame_number: int = 0

    @property
    def has_body(self) -> bool:
        return bool(self.body)

    @property
    def has_face(self) -> bool:
        return bool(self.face)

    def get_landmark(self, body_part: BodyPart) -> Optional[Landmark]:
        """Get a specific body landmark by body part."""
        if not self.body:
            return None
        index = body_part.value
        if 0 <= index < len(self.body):
            return self.body[index]
        return None

    def get_face_point(self, point: FacePoint) -> Optional[Landmark]:
        """Get a specific face mesh landmark."""
        if not self.face:
            return None
        index = point.value
        if 0 <= index < len(self.face):
            return self.face[index]
        return None

    def groups(self) -> dict[str, Optional[tuple[Landmark, ...]]]:
        """All landmark groups keyed by name."""
        return {
            "body": self.body,
            "left_hand": self.left_hand,
            "right_hand": self.right_hand,
            "face": self.face,
        }
