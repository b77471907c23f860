"""
Detections - Raw detector output for one refresh cycle.

The detector delivers bounding boxes only. There is no identity
across frames: every refresh replaces the whole set, and an object
is "lost" simply when it is absent from the new set.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto


class ObjectKind(Enum):
    """What a detected box represents."""

    UNKNOWN = auto()
    BALL = auto()
    MARKER = auto()
    PEER = auto()


class DetectorMode(Enum):
    """What the detector looks for."""

    COLOR = auto()  # Balls and peers
    MARKERS = auto()  # Fiducial markers


@dataclass
class DetectedObject:
    """One bounding box reported by the detector."""

    screen_x: float  # Box centre, pixels from left
    screen_y: float  # Box centre, pixels from top
    width: float  # Pixels
    height: float  # Pixels
    class_id: int = -1  # Detector id (marker id for markers)
    kind: ObjectKind = ObjectKind.UNKNOWN
    last_seen: float = 0.0  # Monotonic timestamp of the refresh

    @property
    def diagonal(self) -> float:
        """Box diagonal in pixels."""
        return (self.width**2 + self.height**2) ** 0.5

    @property
    def is_degenerate(self) -> bool:
        return self.width <= 0 or self.height <= 0


@dataclass
class Detections:
    """Result of one detector refresh, split by kind."""

    balls: list[DetectedObject] = field(default_factory=list)
    markers: list[DetectedObject] = field(default_factory=list)
    peers: list[DetectedObject] = field(default_factory=list)
    timestamp: float = 0.0

    def of_kind(self, kind: ObjectKind) -> list[DetectedObject]:
        """Candidates of a single kind (kinds are never mixed)."""
        if kind == ObjectKind.BALL:
            return self.balls
        if kind == ObjectKind.MARKER:
            return self.markers
        if kind == ObjectKind.PEER:
            return self.peers
        return []

    def marker(self, class_id: int) -> DetectedObject | None:
        """First visible marker with the given id."""
        for m in self.markers:
            if m.class_id == class_id:
                return m
        return None

    @property
    def is_empty(self) -> bool:
        return not (self.balls or self.markers or self.peers)

    @classmethod
    def from_objects(cls, objects: list[DetectedObject], timestamp: float = 0.0) -> Detections:
        """Sort a flat detector list into per-kind lists, keeping order."""
        detections = cls(timestamp=timestamp)
        for obj in objects:
            if obj.kind != ObjectKind.UNKNOWN:
                detections.of_kind(obj.kind).append(obj)
        return detections
