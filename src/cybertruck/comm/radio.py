"""
Radio link with the game controller.

The radio bridge forwards one command word per line (OBEY, START,
STOP, DANGER). A background thread reads lines and posts the
commands to the inbox.
"""

from __future__ import annotations

import logging
import threading

import serial

from cybertruck.config import RADIO_BAUDRATE, RADIO_PORT

from .commands import Command, CommandInbox

logger = logging.getLogger(__name__)


class RadioLink:
    """
    Serial line reader for game controller commands.

    Usage:
        inbox = CommandInbox()
        radio = RadioLink(inbox)
        radio.start()
        ...
        radio.stop()
    """

    def __init__(self, inbox: CommandInbox, port: str = RADIO_PORT, baudrate: int = RADIO_BAUDRATE):
        self.inbox = inbox
        self.port = port
        self.baudrate = baudrate

        self._serial: serial.Serial | None = None
        self._running = False
        self._thread: threading.Thread | None = None
        self.received = 0

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> bool:
        """Open the port and start the reader thread."""
        if self._running:
            return True
        try:
            self._serial = serial.Serial(port=self.port, baudrate=self.baudrate, timeout=0.1)
        except serial.SerialException as e:
            logger.error(f"Failed to open radio on {self.port}: {e}")
            return False

        self._running = True
        self._thread = threading.Thread(target=self._read_loop, daemon=True)
        self._thread.start()
        logger.info(f"Radio listening on {self.port}")
        return True

    def stop(self):
        self._running = False
        if self._thread:
            self._thread.join(timeout=2.0)
            self._thread = None
        if self._serial:
            self._serial.close()
            self._serial = None
        logger.info("Radio stopped")

    def handle_line(self, line: str) -> Command | None:
        """Parse one received line and post it. Returns the command, if any."""
        line = line.strip()
        if not line:
            return None
        command = Command.parse(line)
        if command is None:
            logger.warning(f"Unknown radio message: {line!r}")
            return None
        self.received += 1
        self.inbox.post(command)
        return command

    def _read_loop(self):
        """Background reader thread."""
        while self._running:
            try:
                raw = self._serial.readline()
            except serial.SerialException as e:
                logger.error(f"Radio read error: {e}")
                self._running = False
                break
            if raw:
                self.handle_line(raw.decode(errors="ignore"))
