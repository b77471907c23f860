"""
Target geometry - Bounding boxes to polar coordinates.

Two distance models, chosen per object kind:
- Size-calibrated (flat markers, peers): distance = K / box diagonal,
  K fitted from reference (size, distance) pairs.
- Point-like (balls): planar pixel distance from an origin placed
  below the screen centre. Anything below the origin is behind the
  robot and unreachable (distance = inf).

Bearing is a linear map of the horizontal pixel position onto the
camera field of view: negative = left, positive = right.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum, auto

from cybertruck.config import (
    BALL_ORIGIN_X,
    BALL_ORIGIN_Y,
    CAMERA_FOV,
    MARKER_REFERENCES,
    PEER_REFERENCES,
    SCREEN_HEIGHT,
    SCREEN_TOLERANCE_X,
    SCREEN_WIDTH,
)
from .detections import DetectedObject, ObjectKind

logger = logging.getLogger(__name__)


class ScreenSide(Enum):
    LEFT = auto()
    MIDDLE = auto()
    RIGHT = auto()


@dataclass
class Target:
    """Polar target relative to the robot's forward axis."""

    distance: float  # cm or pixels depending on kind, inf if unknown
    bearing: float  # degrees, negative = left
    kind: ObjectKind
    class_id: int = -1
    source: DetectedObject | None = field(default=None, compare=False, repr=False)

    @property
    def is_reachable(self) -> bool:
        return math.isfinite(self.distance)


@dataclass(frozen=True)
class SizeCalibration:
    """Distance from apparent size: distance = K / diagonal."""

    references: tuple[tuple[float, float], ...]

    @property
    def k(self) -> float:
        """Mean of size * distance over the reference pairs."""
        return sum(size * dist for size, dist in self.references) / len(self.references)

    def distance(self, obj: DetectedObject) -> float:
        if obj.is_degenerate:
            return math.inf
        return self.k / obj.diagonal


@dataclass(frozen=True)
class PointCalibration:
    """Planar pixel distance from a virtual origin below screen centre."""

    origin_x: float
    origin_y: float

    def distance(self, obj: DetectedObject) -> float:
        if obj.is_degenerate:
            return math.inf
        dx = obj.screen_x - self.origin_x
        dy = obj.screen_y - self.origin_y
        if dy > 0:
            # Projects behind the robot
            return math.inf
        return math.hypot(dx, dy)


def default_calibrations() -> dict:
    return {
        ObjectKind.BALL: PointCalibration(BALL_ORIGIN_X, BALL_ORIGIN_Y),
        ObjectKind.UNKNOWN: PointCalibration(BALL_ORIGIN_X, BALL_ORIGIN_Y),
        ObjectKind.MARKER: SizeCalibration(MARKER_REFERENCES),
        ObjectKind.PEER: SizeCalibration(PEER_REFERENCES),
    }


class TargetModel:
    """
    Converts detector boxes into Targets and picks the best one.

    Usage:
        model = TargetModel()
        target = model.select(detections.balls, ObjectKind.BALL)
        if target is not None:
            print(f"ball at {target.distance:.0f}px, {target.bearing:.1f}°")
    """

    def __init__(
        self,
        screen_width: float = SCREEN_WIDTH,
        screen_height: float = SCREEN_HEIGHT,
        fov: float = CAMERA_FOV,
        calibrations: dict = None,
        tolerance_x: float = SCREEN_TOLERANCE_X,
    ):
        self.screen_width = screen_width
        self.screen_height = screen_height
        self.fov = fov
        self.calibrations = calibrations or default_calibrations()
        self.tolerance_x = tolerance_x

    @property
    def center_x(self) -> float:
        return self.screen_width / 2

    def bearing(self, obj: DetectedObject) -> float:
        """Horizontal angle in degrees, -fov/2 at the left edge."""
        return obj.screen_x * (self.fov / self.screen_width) - self.fov / 2

    def distance(self, obj: DetectedObject) -> float:
        calibration = self.calibrations.get(obj.kind)
        if calibration is None:
            return math.inf
        return calibration.distance(obj)

    def to_target(self, obj: DetectedObject) -> Target:
        return Target(
            distance=self.distance(obj),
            bearing=self.bearing(obj),
            kind=obj.kind,
            class_id=obj.class_id,
            source=obj,
        )

    def screen_side(self, obj: DetectedObject) -> ScreenSide:
        if obj.screen_x > self.center_x + self.tolerance_x:
            return ScreenSide.RIGHT
        if obj.screen_x < self.center_x - self.tolerance_x:
            return ScreenSide.LEFT
        return ScreenSide.MIDDLE

    def select(self, candidates: list[DetectedObject], kind: ObjectKind) -> Target | None:
        """
        Pick the closest candidate of one kind.

        Candidates of other kinds and unreachable ones are ignored.
        Ties go to the earlier candidate.

        Returns:
            The selected Target, or None if nothing qualifies.
        """
        best = None
        for obj in candidates:
            if obj.kind != kind:
                continue
            target = self.to_target(obj)
            if not target.is_reachable:
                continue
            if best is None or target.distance < best.distance:
                best = target
        return best
