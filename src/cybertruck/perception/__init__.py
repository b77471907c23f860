"""
Perception Layer - World understanding.

Turns detector output into things the robot can act on:
- Detections: Raw boxes of one refresh, split by kind
- TargetModel: Box -> (distance, bearing), best target selection
- ArenaMap: Pose from markers, coarse occupancy grid
"""

from .detections import DetectedObject, Detections, DetectorMode, ObjectKind
from .geometry import PointCalibration, ScreenSide, SizeCalibration, Target, TargetModel
from .arena import ArenaMap, MarkerPosition, RobotPose

__all__ = [
    "DetectedObject",
    "Detections",
    "DetectorMode",
    "ObjectKind",
    "PointCalibration",
    "ScreenSide",
    "SizeCalibration",
    "Target",
    "TargetModel",
    "ArenaMap",
    "MarkerPosition",
    "RobotPose",
]
