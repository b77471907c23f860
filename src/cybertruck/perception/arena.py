"""
Arena map - Pose estimate from fixed markers.

Markers sit at the arena corners. Each visible marker with a known
position gives one estimate of the robot position (marker position
minus the measured distance along the absolute bearing). Estimates
are combined by a confidence-weighted average.

Coordinates are cm from the arena centre, y pointing North,
headings in degrees clockwise from North.
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from dataclasses import dataclass

import numpy as np

from cybertruck.config import (
    ARENA_HEIGHT,
    ARENA_WIDTH,
    BASE_CAMP,
    GRID_RESOLUTION,
    MARKER_LAYOUT,
    POSITION_MAX_AGE,
    POSITION_MIN_CONFIDENCE,
)
from .detections import DetectedObject, ObjectKind
from .geometry import TargetModel

logger = logging.getLogger(__name__)

UNKNOWN = -1
FREE = 0
OCCUPIED = 1


@dataclass
class MarkerPosition:
    """Surveyed marker location."""

    marker_id: int
    cardinal: str
    x: float
    y: float


@dataclass
class RobotPose:
    """Estimated robot pose."""

    x: float = 0.0
    y: float = 0.0
    heading: float = 0.0  # degrees, 0 = North
    confidence: float = 0.0  # 0-100


class ArenaMap:
    """
    Pose estimation and coarse occupancy grid.

    Usage:
        arena = ArenaMap(target_model)

        # When markers are visible:
        pose = arena.update_robot_position(detections.markers, heading, now)

        if arena.is_position_reliable(now):
            print(arena.distance_to_base(), arena.bearing_to_base())
    """

    def __init__(
        self,
        target_model: TargetModel = None,
        layout=MARKER_LAYOUT,
        base=BASE_CAMP,
        width: float = ARENA_WIDTH,
        height: float = ARENA_HEIGHT,
        resolution: float = GRID_RESOLUTION,
        pair_tolerance: float = 15.0,
    ):
        self.target_model = target_model or TargetModel()
        self.markers = [MarkerPosition(*entry) for entry in layout]
        self.base = MarkerPosition(*base)
        self.width = width
        self.height = height
        self.resolution = resolution
        self.pair_tolerance = pair_tolerance

        self.pose = RobotPose()
        self.last_update: float | None = None

        self.grid_width = math.ceil(width / resolution)
        self.grid_height = math.ceil(height / resolution)
        self.grid = np.full((self.grid_height, self.grid_width), UNKNOWN, dtype=np.int8)
        self._mark_boundaries()

        duplicates = [mid for mid, n in Counter(m.marker_id for m in self.markers).items() if n > 1]
        if duplicates:
            logger.warning(
                f"Marker layout is ambiguous for ids {sorted(duplicates)}: "
                f"using the first listed corner for each"
            )

    def marker_position(self, marker_id: int) -> MarkerPosition | None:
        for m in self.markers:
            if m.marker_id == marker_id:
                return m
        return None

    def update_robot_position(
        self,
        markers: list[DetectedObject],
        heading: float,
        now: float,
    ) -> RobotPose:
        """
        Re-estimate the pose from the markers visible this cycle.

        Args:
            markers: Marker detections of the current refresh.
            heading: Compass heading in degrees.
            now: Monotonic timestamp.

        Returns:
            The current pose (unchanged if no usable marker is visible).
        """
        points = []
        for marker in markers:
            if marker.kind != ObjectKind.MARKER or marker.class_id <= 0:
                continue
            estimate = self._triangulate(marker, heading)
            if estimate is not None:
                points.append((estimate[0], estimate[1], self._confidence_weight(marker)))

        if points:
            xs, ys, weights = (np.array(col, dtype=float) for col in zip(*points))
            if weights.sum() > 0:
                x = float(np.average(xs, weights=weights))
                y = float(np.average(ys, weights=weights))
            else:
                x = y = 0.0
            self.pose = RobotPose(
                x=x,
                y=y,
                heading=heading,
                confidence=min(100, len(points) * 25),
            )
            self.last_update = now
            logger.debug(
                f"Pose ({self.pose.x:.0f}, {self.pose.y:.0f}) "
                f"heading={heading:.0f}° from {len(points)} marker(s)"
            )

        if len(markers) >= 2:
            self._refine_with_pairs(markers)

        return self.pose

    def _triangulate(self, marker: DetectedObject, heading: float):
        position = self.marker_position(marker.class_id)
        if position is None:
            return None
        distance = self.target_model.distance(marker)
        if not math.isfinite(distance):
            return None
        absolute = math.radians(heading + self.target_model.bearing(marker))
        return (
            position.x - distance * math.sin(absolute),
            position.y - distance * math.cos(absolute),
        )

    def _confidence_weight(self, marker: DetectedObject) -> float:
        # Closer (bigger) markers and markers near the screen centre are more reliable
        base_weight = min(1.0, marker.diagonal / 50)
        center = self.target_model.center_x
        edge_weight = max(0.5, 1 - abs(marker.screen_x - center) / center)
        return base_weight * edge_weight

    def _refine_with_pairs(self, markers: list[DetectedObject]) -> None:
        ordered = sorted(markers, key=lambda m: m.screen_x)
        for left, right in zip(ordered, ordered[1:]):
            if self._pair_consistent(left, right):
                self.pose.confidence = min(100, self.pose.confidence + 10)

    def _pair_consistent(self, left: DetectedObject, right: DetectedObject) -> bool:
        left_pos = self.marker_position(left.class_id)
        right_pos = self.marker_position(right.class_id)
        if left_pos is None or right_pos is None:
            return False
        expected = math.degrees(math.atan2(right_pos.x - left_pos.x, right_pos.y - left_pos.y))
        observed = self.target_model.bearing(right) - self.target_model.bearing(left)
        return abs(expected - observed) < self.pair_tolerance

    def is_position_reliable(self, now: float) -> bool:
        if self.last_update is None:
            return False
        return (
            now - self.last_update < POSITION_MAX_AGE
            and self.pose.confidence > POSITION_MIN_CONFIDENCE
        )

    def distance_to_base(self) -> float:
        return math.hypot(self.pose.x - self.base.x, self.pose.y - self.base.y)

    def bearing_to_base(self) -> float:
        """Absolute bearing to the base camp, 0-360 clockwise from North."""
        bearing = math.degrees(math.atan2(self.base.x - self.pose.x, self.base.y - self.pose.y))
        return bearing + 360 if bearing < 0 else bearing

    # --- Occupancy grid ---

    def _cell(self, x: float, y: float) -> tuple[int, int] | None:
        col = math.floor((x + self.width / 2) / self.resolution)
        row = math.floor((y + self.height / 2) / self.resolution)
        if 0 <= col < self.grid_width and 0 <= row < self.grid_height:
            return row, col
        return None

    def _mark_boundaries(self) -> None:
        rows, cols = np.indices(self.grid.shape)
        xs = cols * self.resolution - self.width / 2
        ys = rows * self.resolution - self.height / 2
        edge = (np.abs(xs) >= self.width / 2 - self.resolution) | (
            np.abs(ys) >= self.height / 2 - self.resolution
        )
        self.grid[edge] = OCCUPIED

    def mark_obstacle(self, x: float, y: float) -> None:
        cell = self._cell(x, y)
        if cell is not None:
            self.grid[cell] = OCCUPIED

    def mark_free(self, x: float, y: float) -> None:
        cell = self._cell(x, y)
        if cell is not None:
            self.grid[cell] = FREE

    def is_position_free(self, x: float, y: float) -> bool:
        """True only for cells known to be free (unknown is not free)."""
        cell = self._cell(x, y)
        if cell is None:
            return False
        return bool(self.grid[cell] == FREE)
