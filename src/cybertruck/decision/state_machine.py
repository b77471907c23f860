"""
State machine for robot behavior.

Decides what the robot wants from detections, the game clock and
external commands, and writes the next Waypoint for the motion
controller. Each state has one entry action, run once per transition.
"""

from __future__ import annotations

import logging
import time
from enum import Enum, auto
from typing import Callable

from cybertruck.config import MARKER_HOME
from cybertruck.control.motion import MotionController, MotionStatus
from cybertruck.control.pid import clamp, wrap_angle
from cybertruck.params import Parameters
from cybertruck.perception import (
    ArenaMap,
    Detections,
    DetectorMode,
    ObjectKind,
    ScreenSide,
    Target,
    TargetModel,
)

logger = logging.getLogger(__name__)


class RobotState(Enum):
    """Robot state enumeration."""

    STOPPED = auto()
    WAITING = auto()
    SEARCHING_TARGETS = auto()
    TRACKING_TARGET = auto()
    SEARCHING_HOME = auto()
    GOING_HOME = auto()
    UNBLOCKING = auto()
    AT_HOME = auto()


COLLECTING_STATES = frozenset({RobotState.SEARCHING_TARGETS, RobotState.TRACKING_TARGET})
ACTIVE_STATES = COLLECTING_STATES | {RobotState.SEARCHING_HOME, RobotState.GOING_HOME}


class StateMachine:
    """
    High-level state machine for the collect-and-return game.

    States:
    - WAITING: Powered up, waiting for the start command
    - SEARCHING_TARGETS: No ball in view, spin towards where one was last seen
    - TRACKING_TARGET: Drive onto the closest ball
    - SEARCHING_HOME: Time is running out, look for the home marker
    - GOING_HOME: Drive to the home marker
    - UNBLOCKING: Stalled, run an escape maneuver then resume
    - AT_HOME: Arrived, everything off
    - STOPPED: Stopped by the game controller

    Usage:
        sm = StateMachine(motion, params)
        sm.start()

        # In control loop:
        waypoint = sm.step(detections, session.remaining_time())
    """

    def __init__(
        self,
        motion: MotionController,
        params: Parameters = None,
        target_model: TargetModel = None,
        arena: ArenaMap = None,
        detector=None,
        home_marker: int = MARKER_HOME,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.motion = motion
        self.params = params or Parameters()
        self.target_model = target_model or TargetModel()
        self.arena = arena
        self.detector = detector  # Anything with set_mode(DetectorMode)
        self.home_marker = home_marker
        self.clock = clock

        self.state = RobotState.WAITING
        self.previous_state: RobotState | None = None  # Resumed after UNBLOCKING
        self.target: Target | None = None

        now = clock()
        self._entered_at = now
        self._last_target_seen: float | None = None
        self._last_side = ScreenSide.RIGHT

        self._on_enter = {
            RobotState.STOPPED: self._enter_stopped,
            RobotState.WAITING: self._enter_waiting,
            RobotState.SEARCHING_TARGETS: self._enter_collecting,
            RobotState.TRACKING_TARGET: self._enter_collecting,
            RobotState.SEARCHING_HOME: self._enter_homing,
            RobotState.GOING_HOME: self._enter_homing,
            RobotState.UNBLOCKING: self._enter_unblocking,
            RobotState.AT_HOME: self._enter_at_home,
        }
        self._on_enter[self.state](now)

    def set_state(self, state: RobotState, now: float = None) -> bool:
        """
        Change state and run its entry action.

        Re-entering the current state does nothing.

        Returns:
            True if the state changed.
        """
        if state == self.state:
            return False
        now = self.clock() if now is None else now
        logger.info(f"Transition: {self.state.name} -> {state.name}")
        self.state = state
        self._entered_at = now
        self.motion.waypoint.discontinuity = True
        self._on_enter[state](now)
        return True

    # --- Entry actions ---

    def _set_detector_mode(self, mode: DetectorMode) -> None:
        if self.detector is not None:
            self.detector.set_mode(mode)

    def _enter_stopped(self, now: float) -> None:
        self.motion.stop()

    def _enter_waiting(self, now: float) -> None:
        self.motion.stop()
        self._set_detector_mode(DetectorMode.MARKERS)

    def _enter_collecting(self, now: float) -> None:
        self._set_detector_mode(DetectorMode.COLOR)
        self.motion.engage()
        self.motion.set_auxiliary(self.params.grabber_power)

    def _enter_homing(self, now: float) -> None:
        self._set_detector_mode(DetectorMode.MARKERS)
        self.motion.engage()

    def _enter_unblocking(self, now: float) -> None:
        self.motion.engage()
        self.motion.start_escape(now)

    def _enter_at_home(self, now: float) -> None:
        self.motion.stop()
        logger.info("Mission completed: safe place reached")

    # --- External commands ---

    def start(self, now: float = None) -> None:
        """Start collecting (from WAITING, or STOPPED for a new match)."""
        if self.state not in (RobotState.WAITING, RobotState.STOPPED):
            logger.warning(f"Start ignored in state {self.state.name}")
            return
        self._last_target_seen = None
        self.set_state(RobotState.SEARCHING_TARGETS, now)

    def stop(self, now: float = None) -> None:
        self.set_state(RobotState.STOPPED, now)

    def go_home(self, now: float = None) -> None:
        """Stop collecting and look for home."""
        if self.state in COLLECTING_STATES:
            self.set_state(RobotState.SEARCHING_HOME, now)

    # --- Per-cycle decision ---

    def step(
        self,
        detections: Detections,
        remaining_time: float,
        heading: float = None,
        now: float = None,
    ):
        """
        Run one decision cycle.

        Args:
            detections: Output of the latest detector refresh.
            remaining_time: Seconds left in the match.
            heading: Compass heading in degrees, if available.
            now: Monotonic timestamp.

        Returns:
            The motion controller's Waypoint, updated for this cycle.
        """
        now = self.clock() if now is None else now
        self._check_forced(remaining_time, now)
        self._check_sensing(detections, now)
        self._compute_waypoint(detections, heading, now)
        return self.motion.waypoint

    def _check_forced(self, remaining_time: float, now: float) -> None:
        if self.state in COLLECTING_STATES and remaining_time < self.params.go_home_time:
            logger.info(f"{remaining_time:.0f}s left, going home")
            self.set_state(RobotState.SEARCHING_HOME, now)

        if self.state in ACTIVE_STATES and self.motion.status == MotionStatus.BLOCKED:
            logger.warning(f"Blocked in {self.state.name}")
            self.previous_state = self.state
            self.set_state(RobotState.UNBLOCKING, now)

    def _check_sensing(self, detections: Detections, now: float) -> None:
        if self.state == RobotState.SEARCHING_TARGETS:
            self.target = self._select_ball(detections, now)
            if self.target is not None:
                logger.info(f"Found {len(detections.balls)} ball(s)")
                self.set_state(RobotState.TRACKING_TARGET, now)

        elif self.state == RobotState.TRACKING_TARGET:
            self.target = self._select_ball(detections, now)
            last_seen = self._last_target_seen if self._last_target_seen is not None else self._entered_at
            if self.target is None and now - last_seen > self.params.target_lost_delay:
                logger.info("Balls lost or collected, back to searching")
                self.set_state(RobotState.SEARCHING_TARGETS, now)

        elif self.state == RobotState.SEARCHING_HOME:
            self.target = self._home_target(detections)
            if self.target is not None:
                logger.info("Home marker found")
                self.set_state(RobotState.GOING_HOME, now)

        elif self.state == RobotState.GOING_HOME:
            self.target = self._home_target(detections)
            if self.target is None:
                logger.info("Home marker lost")
                self.set_state(RobotState.SEARCHING_HOME, now)
            elif self.target.distance < self.params.arrival_distance:
                self.set_state(RobotState.AT_HOME, now)

        elif self.state == RobotState.UNBLOCKING:
            if not self.motion.scripted:
                resume = self.previous_state or RobotState.SEARCHING_TARGETS
                self.previous_state = None
                # The escape moved the robot, pre-escape sightings are stale
                self.target = None
                self._last_target_seen = None
                self.motion.waypoint.set(0.0, 0.0)
                self.set_state(resume, now)

    def _select_ball(self, detections: Detections, now: float) -> Target | None:
        target = self.target_model.select(detections.balls, ObjectKind.BALL)
        if target is not None:
            self._last_target_seen = now
            side = self.target_model.screen_side(target.source)
            if side != ScreenSide.MIDDLE:
                self._last_side = side
        return target

    def _home_target(self, detections: Detections) -> Target | None:
        marker = detections.marker(self.home_marker)
        if marker is None:
            return None
        target = self.target_model.to_target(marker)
        return target if target.is_reachable else None

    def _sharpen(self, target: Target, near: float) -> float:
        """Steer harder at near, off-axis targets."""
        bearing = target.bearing
        if abs(bearing) > self.params.tracking_deadband and target.distance < near:
            bearing *= self.params.tracking_gain
        return clamp(bearing, -180.0, 180.0)

    def _spin_bearing(self) -> float:
        direction = -1 if self._last_side == ScreenSide.LEFT else 1
        return direction * self.params.search_spin_bearing

    def _compute_waypoint(self, detections: Detections, heading: float | None, now: float) -> None:
        waypoint = self.motion.waypoint
        p = self.params

        if self.state == RobotState.TRACKING_TARGET:
            if self.target is not None:
                waypoint.set(self.target.distance, self._sharpen(self.target, p.tracking_near_distance))
            # Within the grace delay keep driving to where the ball was

        elif self.state == RobotState.SEARCHING_TARGETS:
            if now - self._entered_at > p.search_spin_delay:
                waypoint.set(p.search_distance, self._spin_bearing())
            else:
                waypoint.set(0.0, 0.0)

        elif self.state == RobotState.SEARCHING_HOME:
            if self.arena is not None and heading is not None and self.arena.is_position_reliable(now):
                turn = wrap_angle(self.arena.bearing_to_base() - heading)
                waypoint.set(self.arena.distance_to_base(), turn)
            else:
                waypoint.set(p.search_distance, self._spin_bearing())

        elif self.state == RobotState.GOING_HOME:
            if self.target is None:
                return
            distance = self.target.distance
            if distance < p.home_slowdown_distance:
                distance *= p.home_slowdown_factor
            waypoint.set(distance, self._sharpen(self.target, p.home_slowdown_distance))

        elif self.state in (RobotState.STOPPED, RobotState.WAITING, RobotState.AT_HOME):
            waypoint.set(0.0, 0.0)

    def summary(self) -> dict:
        """Telemetry snapshot."""
        waypoint = self.motion.waypoint
        return {
            "state": self.state.name,
            "previous_state": self.previous_state.name if self.previous_state else None,
            "waypoint": {"distance": waypoint.distance, "bearing": waypoint.bearing},
            "motion": self.motion.status.name,
            "target": (
                {"distance": self.target.distance, "bearing": self.target.bearing}
                if self.target is not None
                else None
            ),
        }
