"""
Game session - match mode, match state and countdown.

The game controller first sends OBEY to put the robot under its
orders, then START / STOP / DANGER. START is ignored until the robot
obeys. The countdown is polled once per second by the control loop.
"""

from __future__ import annotations

import logging
import time
from enum import Enum, auto
from typing import Callable

from cybertruck.comm.commands import Command
from cybertruck.config import GAME_DURATION

logger = logging.getLogger(__name__)


class GameMode(Enum):
    FREE = auto()  # Free running until OBEY is received
    SLAVE = auto()  # Obeys the game controller


class GameState(Enum):
    STARTED = auto()
    STOPPED = auto()


class GameSession:
    """
    One match, from OBEY to the final STOP.

    Usage:
        session = GameSession(robot=state_machine)
        session.handle(Command.OBEY)
        session.handle(Command.START)

        # Every second:
        session.tick()
    """

    def __init__(
        self,
        robot=None,
        duration: float = GAME_DURATION,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.robot = robot  # StateMachine, or None when run standalone
        self.duration = duration
        self.clock = clock

        self.mode = GameMode.FREE
        self.state = GameState.STOPPED
        self.start_time: float | None = None

    @property
    def is_started(self) -> bool:
        return self.state == GameState.STARTED

    def remaining_time(self, now: float = None) -> float:
        """Seconds left in the match (full duration when not started)."""
        if self.state != GameState.STARTED:
            return self.duration
        now = self.clock() if now is None else now
        return self.duration - (now - self.start_time)

    def _set_state(self, state: GameState) -> None:
        if state != self.state:
            logger.info(f"Game state: {self.state.name} -> {state.name}")
            self.state = state

    def obey(self) -> None:
        self.mode = GameMode.SLAVE
        logger.info("Robot in slave mode")

    def start(self, now: float = None) -> bool:
        """
        Start the match.

        Returns:
            False if ignored because the robot is not obeying yet or the
            match is already running.
        """
        if self.mode != GameMode.SLAVE:
            logger.warning("Asked to start but not in slave mode")
            return False
        if self.state == GameState.STARTED:
            logger.warning("Duplicate start ignored, match already running")
            return False
        now = self.clock() if now is None else now
        self._set_state(GameState.STARTED)
        self.start_time = now
        if self.robot is not None:
            self.robot.start(now)
        return True

    def stop(self, now: float = None) -> None:
        self._set_state(GameState.STOPPED)
        if self.robot is not None:
            self.robot.stop(now)

    def danger(self, now: float = None) -> None:
        """Danger signal: collecting robots head home."""
        logger.warning("Danger signalled")
        if self.robot is None:
            return
        if self.robot.params.obey_danger:
            self.robot.go_home(now)

    def tick(self, now: float = None) -> bool:
        """
        Countdown check.

        Returns:
            True if the match just ran out of time.
        """
        now = self.clock() if now is None else now
        if self.state == GameState.STARTED and self.remaining_time(now) < 0:
            logger.info("Match time is over")
            self.stop(now)
            return True
        return False

    def handle(self, command: Command, now: float = None) -> None:
        """Dispatch one game controller command."""
        logger.info(f"Command: {command.name}")
        if command == Command.OBEY:
            self.obey()
        elif command == Command.START:
            self.start(now)
        elif command == Command.STOP:
            self.stop(now)
        elif command == Command.DANGER:
            self.danger(now)

    def summary(self, now: float = None) -> dict:
        return {
            "mode": self.mode.name,
            "state": self.state.name,
            "remaining_time": round(self.remaining_time(now), 1),
        }
