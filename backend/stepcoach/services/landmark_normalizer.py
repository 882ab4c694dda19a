"""
Landmark Normalizer Service

Validates and cleans one raw landmark frame before any scoring happens.
Downstream scorers index body points by fixed anatomical position, so
malformed input is rejected here, once, instead of in every scorer.
"""

from collections.abc import Mapping, Sequence
from typing import Any, Optional

import numpy as np

from .. import config
from ..domain.landmarks import Landmark, LandmarkFrame
from ..domain.errors import InvalidFrame


GROUP_NAMES = ("body", "left_hand", "right_hand", "face")


class LandmarkNormalizer:
    """
    Turns detector output into a validated LandmarkFrame.

    Accepts either a LandmarkFrame or its mapping form:

        {
            "body": [{"x": 0.5, "y": 0.2, "z": 0.0, "visibility": 0.99}, ...],
            "left_hand": null,
            "right_hand": null,
            "face": [[0.51, 0.18, -0.02], ...],
            "timestamp_ms": 1500,
            "frame_number": 45
        }

    Points may be mappings, 2-4 element sequences or Landmark objects.
    Missing z defaults to 0.0 and missing visibility to 1.0.

    The normalizer is stateless; one instance can be shared.
    """

    def __init__(
        self,
        body_count: int = config.BODY_LANDMARK_COUNT,
        hand_max: int = config.HAND_LANDMARK_MAX,
    ):
        self.body_count = body_count
        self.hand_max = hand_max

    def normalize(self, raw: Any) -> LandmarkFrame:
        """
        Validate a raw frame.

        Raises:
            InvalidFrame: body point count is wrong, a hand has too many
                points, any value is non-finite, or every group is absent.
        """
        if isinstance(raw, LandmarkFrame):
            groups = raw.groups()
            timestamp_ms, frame_number = raw.timestamp_ms, raw.frame_number
        elif isinstance(raw, Mapping):
            groups = {name: raw.get(name) for name in GROUP_NAMES}
            timestamp_ms = self._as_int(raw.get("timestamp_ms", 0), "timestamp_ms")
            frame_number = self._as_int(raw.get("frame_number", 0), "frame_number")
        else:
            raise InvalidFrame(f"Unsupported frame type: {type(raw).__name__}")

        cleaned = {name: self._normalize_group(name, points) for name, points in groups.items()}

        if all(points is None for points in cleaned.values()):
            raise InvalidFrame("Frame contains no landmarks")

        body = cleaned["body"]
        if body is not None and len(body) != self.body_count:
            raise InvalidFrame(
                f"Expected {self.body_count} body landmarks, got {len(body)}"
            )

        for hand in ("left_hand", "right_hand"):
            points = cleaned[hand]
            if points is not None and len(points) > self.hand_max:
                raise InvalidFrame(
                    f"Expected at most {self.hand_max} {hand} landmarks, got {len(points)}"
                )

        return LandmarkFrame(
            body=body,
            left_hand=cleaned["left_hand"],
            right_hand=cleaned["right_hand"],
            face=cleaned["face"],
            timestamp_ms=timestamp_ms,
            frame_number=frame_number,
        )

    # -------------------------------------------------------------------------
    # Private Helper Methods
    # -------------------------------------------------------------------------

    def _normalize_group(self, name: str, points: Any) -> Optional[tuple[Landmark, ...]]:
        """Validate one landmark group; empty groups become None."""
        if points is None:
            return None
        if isinstance(points, (str, bytes)) or not isinstance(points, Sequence):
            raise InvalidFrame(f"'{name}' must be a list of landmarks")
        if len(points) == 0:
            return None

        rows = [self._point_values(name, point) for point in points]

        try:
            values = np.asarray(rows, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise InvalidFrame(f"'{name}' contains non-numeric coordinates") from e

        if not np.isfinite(values).all():
            raise InvalidFrame(f"'{name}' contains non-finite coordinates")

        # Detectors occasionally report visibility a hair outside [0, 1]
        values[:, 3] = np.clip(values[:, 3], 0.0, 1.0)

        return tuple(
            Landmark(x=float(x), y=float(y), z=float(z), visibility=float(v))
            for x, y, z, v in values
        )

    @staticmethod
    def _point_values(name: str, point: Any) -> tuple[Any, Any, Any, Any]:
        """Extract (x, y, z, visibility) from any supported point form."""
        if isinstance(point, Landmark):
            return (point.x, point.y, point.z, point.visibility)

        if isinstance(point, Mapping):
            try:
                return (
                    point["x"],
                    point["y"],
                    point.get("z", 0.0),
                    point.get("visibility", 1.0),
                )
            except KeyError as e:
                raise InvalidFrame(f"'{name}' landmark is missing {e}") from e

        if isinstance(point, Sequence) and not isinstance(point, (str, bytes)) and 2 <= len(point) <= 4:
            x, y, *rest = point
            z = rest[0] if len(rest) >= 1 else 0.0
            visibility = rest[1] if len(rest) >= 2 else 1.0
            return (x, y, z, visibility)

        raise InvalidFrame(f"'{name}' landmark has unsupported format: {point!r}")

    @staticmethod
    def _as_int(value: Any, field_name: str) -> int:
        if isinstance(value, bool):
            raise InvalidFrame(f"'{field_name}' must be a number")
        try:
            number = float(value)
        except (TypeError, ValueError) as e:
            raise InvalidFrame(f"'{field_name}' must be a number") from e
        if not np.isfinite(number):
            raise InvalidFrame(f"'{field_name}' must be finite")
        return int(number)


# =============================================================================
# Convenience function for quick usage
# =============================================================================

_default_normalizer = LandmarkNormalizer()


def normalize_frame(raw: Any) -> LandmarkFrame:
    """
    Validate a raw frame with the default landmark counts.

    Usage:
        frame = normalize_frame({"body": body_points, "timestamp_ms": 0})
    """
    return _default_normalizer.normalize(raw)
