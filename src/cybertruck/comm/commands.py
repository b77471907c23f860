"""
Game controller commands and the inbox they are delivered through.

Commands can arrive from any thread (radio reader, web handlers).
The control loop drains the inbox once at the start of each cycle,
so every command is handled at a cycle boundary.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum

logger = logging.getLogger(__name__)


class Command(Enum):
    """Commands sent by the game controller."""

    OBEY = "OBEY"
    START = "START"
    STOP = "STOP"
    DANGER = "DANGER"

    @classmethod
    def parse(cls, text: str) -> Command | None:
        """Parse a command word, case-insensitive. None if unknown."""
        try:
            return cls(text.strip().upper())
        except ValueError:
            return None


class CommandInbox:
    """
    Single-slot mailbox for commands.

    A newer command overwrites one that has not been drained yet.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._pending: Command | None = None

    def post(self, command: Command) -> None:
        with self._lock:
            if self._pending is not None:
                logger.warning(f"Command {self._pending.name} dropped, replaced by {command.name}")
            self._pending = command

    def drain(self) -> Command | None:
        """Take the pending command, if any."""
        with self._lock:
            command, self._pending = self._pending, None
            return command

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._pending is not None
