"""
Motor actuator - driver board communication.

Handles:
- Sending throttle, steering and grabber commands
- Reading acceleration and compass heading
- Emergency stop
"""

from __future__ import annotations

import logging

import serial

from cybertruck.config import (
    AUX_MAX,
    DRIVER_BAUDRATE,
    DRIVER_PORT,
    STEERING_CENTER,
    STEERING_LIMIT,
    THROTTLE_LIMIT,
)
from cybertruck.control.pid import clamp

logger = logging.getLogger(__name__)


class Motor:
    """
    Driver board communication.

    Protocol:
        Commands (Pi -> board):
            C:<throttle>,<servo>,<aux>\\n  - throttle: -100..100, servo: 0..180, aux: 0..100
            E\\n                           - emergency stop

        Status (board -> Pi):
            S:<ax>,<ay>,<heading>\\n        - acceleration in mg, heading in degrees
            E:<error_code>\\n

    Setters are idempotent: a command is only sent when a value changes.
    """

    def __init__(self, port: str = DRIVER_PORT, baudrate: int = DRIVER_BAUDRATE):
        self.port = port
        self.baudrate = baudrate

        self._serial: serial.Serial | None = None
        self._connected = False

        self._throttle = 0
        self._steering = 0
        self._auxiliary = 0

        self._ax = 0.0
        self._ay = 0.0
        self._heading: float | None = None
        self.commands_sent = 0

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def throttle(self) -> int:
        return self._throttle

    @property
    def steering(self) -> int:
        return self._steering

    @property
    def auxiliary(self) -> int:
        return self._auxiliary

    @property
    def acceleration(self) -> tuple[float, float]:
        """Latest (ax, ay) in mg."""
        return (self._ax, self._ay)

    @property
    def heading(self) -> float | None:
        """Latest compass heading in degrees, None until the first status."""
        return self._heading

    def connect(self) -> bool:
        """Open serial connection to the driver board."""
        try:
            self._serial = serial.Serial(port=self.port, baudrate=self.baudrate, timeout=0.005)
        except serial.SerialException as e:
            logger.error(f"Failed to connect to driver board: {e}")
            self._connected = False
            return False
        self._connected = True
        logger.info(f"Connected to driver board on {self.port}")
        return True

    def disconnect(self):
        """Close serial connection."""
        if self._serial:
            self.emergency_stop()
            self._serial.close()
            self._serial = None
        self._connected = False
        logger.info("Disconnected from driver board")

    def set_steering(self, angle: float) -> None:
        """Steering in degrees, positive = right."""
        value = round(clamp(angle, -STEERING_LIMIT, STEERING_LIMIT))
        if value != self._steering:
            self._steering = value
            self._send_command()

    def set_throttle(self, percent: float) -> None:
        """Throttle in percent, negative = reverse."""
        value = round(clamp(percent, -THROTTLE_LIMIT, THROTTLE_LIMIT))
        if value != self._throttle:
            self._throttle = value
            self._send_command()

    def set_auxiliary(self, percent: float) -> None:
        """Grabber power in percent."""
        value = round(clamp(percent, 0, AUX_MAX))
        if value != self._auxiliary:
            self._auxiliary = value
            self._send_command()

    def emergency_stop(self):
        """Emergency stop - sends E command."""
        self._throttle = 0
        self._auxiliary = 0
        if self._serial:
            self._serial.write(b"E\n")
            logger.warning("EMERGENCY STOP")

    def update(self) -> bool:
        """
        Read one status line (non-blocking).

        Call this every control cycle to keep heading and acceleration fresh.

        Returns:
            True if a status line was parsed
        """
        if not self._serial or not self._serial.in_waiting:
            return False

        try:
            line = self._serial.readline().decode(errors="ignore")
        except serial.SerialException as e:
            logger.error(f"Error reading driver board status: {e}")
            self._serial.reset_input_buffer()
            return False
        return self.parse_status(line)

    def parse_status(self, line: str) -> bool:
        """Parse a status line from the board."""
        line = line.strip()
        if line.startswith("S:"):
            parts = line[2:].split(",")
            if len(parts) < 3:
                logger.debug(f"Short status line: {line}")
                return False
            try:
                ax, ay, heading = (float(p) for p in parts[:3])
            except ValueError:
                logger.debug(f"Bad status line: {line}")
                return False
            self._ax, self._ay = ax, ay
            self._heading = heading % 360
            return True

        if line.startswith("E:"):
            logger.error(f"Driver board error: {line[2:]}")
        return False

    def _send_command(self):
        """Send current throttle, steering and grabber power."""
        if not self._serial:
            logger.debug("Not connected to driver board")
            return

        # Servo: 90 = straight, higher = right
        servo = STEERING_CENTER + self._steering
        command = f"C:{self._throttle},{servo},{self._auxiliary}\n"
        self._serial.write(command.encode())
        self.commands_sent += 1
        logger.debug(f"Sent: {command.strip()}")

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()
