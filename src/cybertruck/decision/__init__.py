"""
Decision Layer - What to do.

Contains:
- StateMachine: Robot behavior, writes the next Waypoint each cycle
"""

from .state_machine import ACTIVE_STATES, COLLECTING_STATES, RobotState, StateMachine

__all__ = ["ACTIVE_STATES", "COLLECTING_STATES", "RobotState", "StateMachine"]
