"""
Motion controller - Waypoint to actuator commands.

Two ways of driving:
- Closed loop: heading PID -> steering, speed PID -> throttle,
  both evaluated every cycle against the current Waypoint.
- Scripted: fixed (throttle, steering, duration) steps for
  escape, ram and straight moves. Closed loop is suspended while
  a script runs, and a script always runs to completion.

Also watches the accelerometer for stalls: commanded throttle
with too little measured motion means the robot is blocked.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Protocol

import numpy as np

from cybertruck.config import (
    AUX_MAX,
    CONTROL_LOOP_HZ,
    CRUISE_LINEAR_SPEED,
    CRUISE_SPEED,
    PID_SAMPLE_TIME,
    SPIN_ANGULAR_SPEED,
    SPIN_HEADING_TOLERANCE,
    SPIN_SPEED,
    STALL_BUFFER_SIZE,
    STALL_CHECK_INTERVAL,
    STALL_MIN_SAMPLES,
    STALL_MIN_THROTTLE,
    STEERING_LIMIT,
    THROTTLE_LIMIT,
)
from cybertruck.params import Parameters
from .pid import PID, clamp, wrap_angle

logger = logging.getLogger(__name__)


class Actuators(Protocol):
    """Driver layer setters. Must be idempotent."""

    def set_steering(self, angle: float) -> None: ...

    def set_throttle(self, percent: float) -> None: ...

    def set_auxiliary(self, percent: float) -> None: ...


class MotionStatus(Enum):
    UNKNOWN = auto()
    MOVING = auto()
    BLOCKED = auto()


@dataclass
class Waypoint:
    """Next desired (distance, bearing). Not a path."""

    distance: float = 0.0
    bearing: float = 0.0  # degrees, negative = left
    discontinuity: bool = False  # Reset both loops before the next update

    def set(self, distance: float, bearing: float, discontinuity: bool = False) -> None:
        self.distance = distance
        self.bearing = bearing
        self.discontinuity = self.discontinuity or discontinuity


@dataclass(frozen=True)
class ManeuverStep:
    throttle: float  # percent
    steering: float  # degrees, positive = right
    duration_ms: int


@dataclass(frozen=True)
class Maneuver:
    name: str
    steps: tuple[ManeuverStep, ...]

    @property
    def duration(self) -> float:
        """Total duration in seconds."""
        return sum(step.duration_ms for step in self.steps) / 1000.0


ESCAPE_MANEUVERS = (
    Maneuver("back_left", (ManeuverStep(-60, -45, 800), ManeuverStep(50, 45, 600))),
    Maneuver("back_right", (ManeuverStep(-60, 45, 800), ManeuverStep(50, -45, 600))),
    Maneuver("back_straight", (ManeuverStep(-70, 0, 1000), ManeuverStep(50, 30, 500))),
)

RAM = Maneuver("ram", (ManeuverStep(-50, 0, 300), ManeuverStep(100, 0, 700)))


def move_straight(distance: float) -> Maneuver:
    """Open-loop straight move of distance cm (negative = backwards)."""
    duration_ms = int(abs(distance) / CRUISE_LINEAR_SPEED * 1000)
    throttle = CRUISE_SPEED if distance > 0 else -CRUISE_SPEED
    return Maneuver("straight", (ManeuverStep(throttle, 0, duration_ms),))


def spin(angle: float) -> Maneuver:
    """Open-loop turn of roughly angle degrees (positive = right)."""
    duration_ms = int(abs(angle) / SPIN_ANGULAR_SPEED * 1000)
    steering = STEERING_LIMIT if angle > 0 else -STEERING_LIMIT
    return Maneuver("spin", (ManeuverStep(SPIN_SPEED, steering, duration_ms),))


MANEUVERS = {m.name: m for m in (*ESCAPE_MANEUVERS, RAM)}


class StallDetector:
    """
    Moving average of 2-axis acceleration while the robot should move.

    Samples are only taken while |throttle| is above the minimum-motion
    floor; dropping below the floor clears the buffer. Every check
    interval the mean of the valid samples is compared to the threshold.
    """

    def __init__(
        self,
        threshold: float = 150.0,
        size: int = STALL_BUFFER_SIZE,
        min_samples: int = STALL_MIN_SAMPLES,
        check_interval: float = STALL_CHECK_INTERVAL,
        min_throttle: float = STALL_MIN_THROTTLE,
    ):
        self.threshold = threshold
        self.size = size
        self.min_samples = min_samples
        self.check_interval = check_interval
        self.min_throttle = min_throttle

        self._buffer = np.zeros(size)
        self._index = 0
        self._count = 0
        self._last_check: float | None = None

    @property
    def count(self) -> int:
        return self._count

    def clear(self) -> None:
        self._index = 0
        self._count = 0

    def mean(self) -> float | None:
        if self._count == 0:
            return None
        return float(self._buffer[: self._count].mean())

    def sample(self, throttle: float, ax: float, ay: float, now: float) -> MotionStatus | None:
        """
        Feed one cycle of data.

        Returns:
            A status report when a check interval elapsed, else None.
            UNKNOWN if there were not enough samples to judge.
        """
        if abs(throttle) > self.min_throttle:
            self._buffer[self._index] = math.hypot(ax, ay)
            self._index = (self._index + 1) % self.size
            self._count = min(self._count + 1, self.size)
        else:
            self.clear()

        if self._last_check is None:
            self._last_check = now
            return None
        if now - self._last_check < self.check_interval:
            return None
        self._last_check = now

        if self._count < self.min_samples:
            return MotionStatus.UNKNOWN
        if self.mean() < self.threshold:
            return MotionStatus.BLOCKED
        return MotionStatus.MOVING


class MotionController:
    """
    Owns the Waypoint, both PID loops and the stall detector.

    Usage:
        motion = MotionController(motor, params)
        motion.engage()

        # In control loop:
        motion.waypoint.set(distance, bearing)
        status = motion.update(acceleration)
        if status == MotionStatus.BLOCKED:
            motion.start_escape()
    """

    def __init__(
        self,
        actuators: Actuators,
        params: Parameters = None,
        stall: StallDetector = None,
        escapes: tuple[Maneuver, ...] = ESCAPE_MANEUVERS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.actuators = actuators
        self.params = params or Parameters()
        self.clock = clock
        self.escapes = escapes
        self.stall = stall or StallDetector(threshold=self.params.stall_threshold)

        p = self.params
        self.heading_pid = PID(
            p.heading_kp, p.heading_ki, p.heading_kd,
            setpoint=0.0,
            sample_time=PID_SAMPLE_TIME,
            output_limits=(-STEERING_LIMIT, STEERING_LIMIT),
            error_map=wrap_angle,
            auto_mode=False,
            clock=clock,
        )
        self.speed_pid = PID(
            p.speed_kp, p.speed_ki, p.speed_kd,
            setpoint=0.0,
            sample_time=PID_SAMPLE_TIME,
            output_limits=(-THROTTLE_LIMIT, THROTTLE_LIMIT),
            auto_mode=False,
            clock=clock,
        )

        self.waypoint = Waypoint()
        self.status = MotionStatus.UNKNOWN
        self.throttle = 0.0
        self.steering = 0.0
        self.auxiliary = 0.0

        self._engaged = False
        self._last_tick: float | None = None
        self._escape_index = 0

        # Cursor-driven script
        self._script: tuple[ManeuverStep, ...] | None = None
        self._script_index = 0
        self._step_started = 0.0
        # Awaited script (run_sequence)
        self._blocking = False

    @property
    def engaged(self) -> bool:
        return self._engaged

    @property
    def blocking(self) -> bool:
        """True while run_sequence() holds the actuators."""
        return self._blocking

    @property
    def scripted(self) -> bool:
        return self._script is not None or self._blocking

    @property
    def escape_index(self) -> int:
        """Index of the next escape maneuver."""
        return self._escape_index

    # --- Closed loop ---

    def engage(self) -> None:
        """Switch to closed-loop control (no-op if already engaged)."""
        if self._engaged:
            return
        self.heading_pid.set_auto_mode(True, last_output=0.0)
        self.speed_pid.set_auto_mode(True, last_output=0.0)
        self._last_tick = None
        self._engaged = True
        logger.debug("Closed loop engaged")

    def stop(self) -> None:
        """Zero every actuator and leave closed-loop control."""
        self._script = None
        self.heading_pid.auto_mode = False
        self.speed_pid.auto_mode = False
        self._engaged = False
        self.waypoint.set(0.0, 0.0)
        self.stall.clear()
        self.status = MotionStatus.UNKNOWN
        self._dispatch(0.0, 0.0)
        self.set_auxiliary(0.0)

    def reset_loops(self) -> None:
        self.heading_pid.reset()
        self.speed_pid.reset()

    def _sync_gains(self) -> None:
        p = self.params
        self.heading_pid.tunings = (p.heading_kp, p.heading_ki, p.heading_kd)
        self.speed_pid.tunings = (p.speed_kp, p.speed_ki, p.speed_kd)
        self.stall.threshold = p.stall_threshold

    def update(self, acceleration: tuple[float, float] = (0.0, 0.0), now: float = None) -> MotionStatus:
        """
        Run one control cycle.

        Args:
            acceleration: (ax, ay) in mg from the IMU.
            now: Monotonic timestamp, read from the clock if omitted.

        Returns:
            Latest blocked/moving status.

        Raises:
            ValueError: If the clock went backwards (non-positive dt).
        """
        now = self.clock() if now is None else now

        if self._blocking:
            return self.status

        if self._script is not None:
            self._advance_script(now)
            self.stall.clear()
            self._last_tick = now
            return self.status

        if not self._engaged:
            return self.status

        self._sync_gains()
        if self.waypoint.discontinuity:
            self.reset_loops()
            self.waypoint.discontinuity = False
            self._last_tick = None

        dt = now - self._last_tick if self._last_tick is not None else 1.0 / CONTROL_LOOP_HZ
        self._last_tick = now

        # Loops regulate the robot's offset to the waypoint:
        # a target to the right steers right, a far target drives forward.
        steering = self.heading_pid.update(-self.waypoint.bearing, dt=dt)
        throttle = self.speed_pid.update(-self.waypoint.distance, dt=dt)
        self._dispatch(throttle, steering)

        ax, ay = acceleration
        report = self.stall.sample(self.throttle, ax, ay, now)
        if report is not None:
            if report != self.status:
                logger.debug(f"Motion status: {report.name} (mean={self.stall.mean()})")
            self.status = report
        return self.status

    def _dispatch(self, throttle: float, steering: float) -> None:
        self.throttle = clamp(throttle, -THROTTLE_LIMIT, THROTTLE_LIMIT)
        self.steering = clamp(steering, -STEERING_LIMIT, STEERING_LIMIT)
        self.actuators.set_throttle(self.throttle)
        self.actuators.set_steering(self.steering)

    def set_auxiliary(self, percent: float) -> None:
        self.auxiliary = clamp(percent, 0.0, AUX_MAX)
        self.actuators.set_auxiliary(self.auxiliary)

    # --- Scripted moves ---

    def start_sequence(self, steps, now: float = None) -> None:
        """Begin a scripted sequence, advanced by update()."""
        now = self.clock() if now is None else now
        self._script = tuple(steps)
        self._script_index = 0
        self._step_started = now
        self.stall.clear()
        self.status = MotionStatus.UNKNOWN
        if self._script:
            self._apply_step(self._script[0])
        else:
            self._finish_script()

    def start_escape(self, now: float = None) -> Maneuver:
        """Run the next escape maneuver (round robin)."""
        maneuver = self.escapes[self._escape_index]
        self._escape_index = (self._escape_index + 1) % len(self.escapes)
        logger.info(f"Escape maneuver '{maneuver.name}' ({maneuver.duration:.1f}s)")
        self.start_sequence(maneuver.steps, now)
        return maneuver

    def _advance_script(self, now: float) -> None:
        step = self._script[self._script_index]
        while now - self._step_started >= step.duration_ms / 1000.0:
            self._step_started += step.duration_ms / 1000.0
            self._script_index += 1
            if self._script_index >= len(self._script):
                self._finish_script()
                return
            step = self._script[self._script_index]
            self._apply_step(step)

    def _finish_script(self) -> None:
        self._script = None
        self._dispatch(0.0, 0.0)
        self.waypoint.discontinuity = True
        logger.debug("Scripted sequence complete")

    def _apply_step(self, step: ManeuverStep) -> None:
        self._dispatch(step.throttle, step.steering)

    async def run_sequence(self, steps) -> None:
        """
        Run a scripted sequence to completion, holding each step.

        The awaiting task is suspended for the whole sequence. Closed-loop
        mode is restored and the actuators zeroed even if the task is
        cancelled mid-sequence.
        """
        self._blocking = True
        try:
            for step in steps:
                self._apply_step(step)
                await asyncio.sleep(step.duration_ms / 1000.0)
        finally:
            self._blocking = False
            self._dispatch(0.0, 0.0)
            self.stall.clear()
            self.waypoint.discontinuity = True

    async def spin_to(
        self,
        angle: float,
        heading: Callable[[], float | None],
        tolerance: float = SPIN_HEADING_TOLERANCE,
        timeout: float = None,
    ) -> bool:
        """
        Turn by angle degrees (positive = right), stopping on compass heading.

        The heading source is polled once per control period. Without a
        heading the turn falls back to the timed spin(). The turn is cut
        after timeout seconds (default: twice the timed estimate).

        Returns:
            True if the target heading was reached.
        """
        start = heading()
        if start is None:
            logger.warning("No compass heading, timed spin instead")
            await self.run_sequence(spin(angle).steps)
            return False

        target = (start + angle) % 360.0
        if timeout is None:
            timeout = 2.0 * abs(angle) / SPIN_ANGULAR_SPEED
        steering = STEERING_LIMIT if angle > 0 else -STEERING_LIMIT
        deadline = self.clock() + timeout

        self._blocking = True
        try:
            self._dispatch(SPIN_SPEED, steering)
            while True:
                current = heading()
                if current is not None and abs(wrap_angle(target - current)) <= tolerance:
                    logger.debug(f"Spin reached heading {current:.0f}° (target {target:.0f}°)")
                    return True
                if self.clock() >= deadline:
                    logger.warning(f"Spin timed out at heading {current}° (target {target:.0f}°)")
                    return False
                await asyncio.sleep(1.0 / CONTROL_LOOP_HZ)
        finally:
            self._blocking = False
            self._dispatch(0.0, 0.0)
            self.stall.clear()
            self.waypoint.discontinuity = True
