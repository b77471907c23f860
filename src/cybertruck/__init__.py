"""
Arena collector robot.

Layers, bottom-up:
- sensors: Camera and driver board
- perception: Detections, target geometry, arena pose
- control: PID, motion controller, main loop
- decision: Behavior state machine
- mission: Game session
- comm: Game controller commands
- web: Debug interface
"""

__version__ = "0.1.0"
