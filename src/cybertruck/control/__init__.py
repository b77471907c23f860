"""
Control Layer - Execution.

- PID: Discrete PID loop with anti-windup
- MotionController: Waypoint -> steering/throttle, stall detection, maneuvers

The main loop lives in control.controller and is imported from there,
since it depends on every other layer.
"""

from .motion import (
    ESCAPE_MANEUVERS,
    MANEUVERS,
    Maneuver,
    ManeuverStep,
    MotionController,
    MotionStatus,
    StallDetector,
    Waypoint,
)
from .pid import PID, clamp, wrap_angle

__all__ = [
    "ESCAPE_MANEUVERS",
    "MANEUVERS",
    "Maneuver",
    "ManeuverStep",
    "MotionController",
    "MotionStatus",
    "StallDetector",
    "Waypoint",
    "PID",
    "clamp",
    "wrap_angle",
]
