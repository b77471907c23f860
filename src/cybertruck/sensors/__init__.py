"""
Sensor Layer - Hardware interfaces.

Provides access to the robot hardware:
- Camera: OpenCV capture, colour blobs and ArUco markers
- Motor: Driver board communication for throttle, steering, grabber and IMU
"""

from .camera import Camera
from .motor import Motor

__all__ = ["Camera", "Motor"]
