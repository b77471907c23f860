"""
PID controller.

Generic closed-loop primitive used for both steering and throttle:
- Output clamping with integral anti-windup
- Derivative on measurement (no derivative kick on setpoint changes)
- Optional proportional-on-measurement
- Minimum sample time
- Auto/manual mode with bumpless transfer
- Error remap hook (e.g. fold angular error into ±180°)
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


def clamp(value: Optional[float], lower: Optional[float] = None, upper: Optional[float] = None):
    """Clamp value to [lower, upper]. None bounds are open."""
    if value is None:
        return None
    if upper is not None and value > upper:
        return upper
    if lower is not None and value < lower:
        return lower
    return value


def wrap_angle(degrees: float) -> float:
    """Fold an angle into [-180, 180)."""
    return (degrees + 180.0) % 360.0 - 180.0


class PID:
    """
    PID controller with anti-windup.

    Usage:
        pid = PID(1.0, 0.1, 0.05, setpoint=0, output_limits=(-45, 45))
        output = pid.update(measurement)

        # With explicit time step (seconds):
        output = pid.update(measurement, dt=0.05)
    """

    def __init__(
        self,
        kp: float = 1.0,
        ki: float = 0.0,
        kd: float = 0.0,
        setpoint: float = 0.0,
        sample_time: Optional[float] = 0.01,
        output_limits: tuple = (None, None),
        auto_mode: bool = True,
        proportional_on_measurement: bool = False,
        error_map: Callable[[float], float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.kp = kp
        self.ki = ki
        self.kd = kd
        self.setpoint = setpoint
        self.sample_time = sample_time
        self.proportional_on_measurement = proportional_on_measurement
        self.error_map = error_map
        self.clock = clock

        self.proportional = 0.0
        self.integral = 0.0
        self.derivative = 0.0

        self._min_output: Optional[float] = None
        self._max_output: Optional[float] = None
        self._auto_mode = auto_mode
        self._last_time = 0.0
        self._last_output: Optional[float] = None
        self._last_input: Optional[float] = None

        self.output_limits = output_limits
        self.reset()

    def update(self, measurement: float, dt: Optional[float] = None) -> Optional[float]:
        """
        Compute a new output from the current measurement.

        Args:
            measurement: Current process value.
            dt: Seconds since the last update. Derived from the clock if
                omitted, with a tiny positive value when no time elapsed.

        Returns:
            Control output, or the previous output in manual mode or when
            called faster than sample_time.

        Raises:
            ValueError: If dt is not positive (explicit zero, or the clock
                went backwards).
        """
        if not self._auto_mode:
            return self._last_output

        now = self.clock()
        if dt is None:
            elapsed = now - self._last_time
            dt = elapsed if elapsed else 1e-16
        if dt <= 0:
            raise ValueError(f"Invalid dt {dt}, must be positive")

        if self.sample_time is not None and dt < self.sample_time and self._last_output is not None:
            return self._last_output

        error = self.setpoint - measurement
        if self.error_map is not None:
            error = self.error_map(error)
        d_input = measurement - (self._last_input if self._last_input is not None else measurement)

        if self.proportional_on_measurement:
            self.proportional -= self.kp * d_input
        else:
            self.proportional = self.kp * error

        # Anti-windup: integral never leaves the output range
        self.integral += self.ki * error * dt
        self.integral = clamp(self.integral, *self.output_limits)

        self.derivative = -self.kd * d_input / dt

        output = clamp(self.proportional + self.integral + self.derivative, *self.output_limits)

        self._last_output = output
        self._last_input = measurement
        self._last_time = now
        return output

    def __call__(self, measurement: float, dt: Optional[float] = None) -> Optional[float]:
        return self.update(measurement, dt)

    @property
    def output_limits(self) -> tuple:
        return self._min_output, self._max_output

    @output_limits.setter
    def output_limits(self, limits):
        if limits is None:
            limits = (None, None)
        lower, upper = limits
        if lower is not None and upper is not None and lower >= upper:
            raise ValueError("Lower output limit must be less than upper limit")
        self._min_output = lower
        self._max_output = upper
        self.integral = clamp(self.integral, lower, upper)
        self._last_output = clamp(self._last_output, lower, upper)

    @property
    def auto_mode(self) -> bool:
        return self._auto_mode

    @auto_mode.setter
    def auto_mode(self, enabled: bool):
        self.set_auto_mode(enabled)

    def set_auto_mode(self, enabled: bool, last_output: Optional[float] = None) -> None:
        """
        Switch between automatic and manual control.

        Re-enabling resets the controller and seeds the integral with
        last_output so the transfer is bumpless.
        """
        if enabled and not self._auto_mode:
            self.reset()
            self.integral = clamp(last_output if last_output is not None else 0.0, *self.output_limits)
        self._auto_mode = enabled

    def reset(self) -> None:
        """Clear internal state."""
        self.proportional = 0.0
        self.integral = clamp(0.0, *self.output_limits)
        self.derivative = 0.0
        self._last_time = self.clock()
        self._last_output = None
        self._last_input = None

    @property
    def components(self) -> tuple[float, float, float]:
        """(P, I, D) contributions of the last update."""
        return self.proportional, self.integral, self.derivative

    @property
    def tunings(self) -> tuple[float, float, float]:
        return self.kp, self.ki, self.kd

    @tunings.setter
    def tunings(self, gains):
        self.kp, self.ki, self.kd = gains

    @property
    def last_output(self) -> Optional[float]:
        return self._last_output

    def state(self) -> dict:
        """Snapshot for logging and the web interface."""
        error = self.setpoint - self._last_input if self._last_input is not None else None
        return {
            "proportional": self.proportional,
            "integral": self.integral,
            "derivative": self.derivative,
            "output": self._last_output,
            "error": error,
            "auto_mode": self._auto_mode,
        }
