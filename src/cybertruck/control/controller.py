"""
Main controller - Coordinates all layers.

This is the main control loop that, every cycle:
1. Handles a pending game controller command
2. Reads the driver board status (heading, acceleration)
3. Refreshes camera detections
4. Updates the arena pose estimate from visible markers
5. Gets the next waypoint from the StateMachine
6. Runs the motion controller, which drives the actuators

Slower timers run beside the loop: the match countdown (1 s) and
statistics logging (5 s).
"""

from __future__ import annotations

import asyncio
import logging
import signal
import time
from typing import Callable

from cybertruck.comm import CommandInbox, RadioLink
from cybertruck.config import CONTROL_LOOP_HZ, GAME_DURATION
from cybertruck.decision import StateMachine
from cybertruck.mission import GameSession
from cybertruck.params import Parameters
from cybertruck.perception import ArenaMap, Detections, TargetModel

from .motion import MotionController

logger = logging.getLogger(__name__)

COUNTDOWN_PERIOD = 1.0  # seconds
STATS_PERIOD = 5.0  # seconds


class Controller:
    """
    Main robot controller.

    Coordinates:
    - Sensor layer (Camera, Motor)
    - Perception layer (TargetModel, ArenaMap)
    - Decision layer (StateMachine)
    - Motion (MotionController)
    - Mission (GameSession, CommandInbox)

    Hardware objects can be injected, which is how tests drive the
    loop with fakes.

    Usage:
        controller = Controller()
        asyncio.run(controller.run())
    """

    def __init__(
        self,
        params: Parameters = None,
        camera=None,
        motor=None,
        radio: RadioLink = None,
        duration: float = GAME_DURATION,
        clock: Callable[[], float] = time.monotonic,
    ):
        # Runtime parameters (shared, tunable via web)
        self.params = params or Parameters.load()
        self.clock = clock

        # Hardware
        if camera is None:
            from cybertruck.sensors import Camera

            camera = Camera(params=self.params)
        if motor is None:
            from cybertruck.sensors import Motor

            motor = Motor()
        self.camera = camera
        self.motor = motor

        # Commands
        self.inbox = CommandInbox()
        self.radio = radio

        # Perception
        self.target_model = TargetModel()
        self.arena = ArenaMap(self.target_model)

        # Motion and decision
        self.motion = MotionController(self.motor, self.params, clock=clock)
        self.state_machine = StateMachine(
            self.motion,
            self.params,
            target_model=self.target_model,
            arena=self.arena,
            detector=self.camera,
            clock=clock,
        )
        self.session = GameSession(robot=self.state_machine, duration=duration, clock=clock)

        # Latest perception snapshot (for web access)
        self.detections = Detections()

        # Control state
        self._running = False
        self._loop_count = 0
        self._overruns = 0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def loop_count(self) -> int:
        return self._loop_count

    def cycle(self, now: float = None) -> None:
        """Run one control cycle."""
        now = self.clock() if now is None else now

        # 1. Commands are handled at cycle boundaries only
        command = self.inbox.drain()
        if command is not None:
            self.session.handle(command, now)

        # 2. Heading and acceleration
        self.motor.update()
        heading = self.motor.heading

        # 3. Detections of the latest frame
        self.detections = self.camera.refresh()

        # 4. Pose from markers
        if heading is not None and self.detections.markers:
            self.arena.update_robot_position(self.detections.markers, heading, now)

        # 5. Decision
        self.state_machine.step(
            self.detections,
            self.session.remaining_time(now),
            heading=heading,
            now=now,
        )

        # 6. Execution
        self.motion.update(self.motor.acceleration, now)
        self._loop_count += 1

    async def run(self):
        """Run the main control loop."""
        logger.info("Controller starting...")

        # Setup signal handlers for graceful shutdown
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self._shutdown)

        timers = []
        try:
            if not self._init_hardware():
                logger.error("Failed to initialize hardware")
                return

            self._running = True
            timers = [
                asyncio.create_task(self._every(COUNTDOWN_PERIOD, self._countdown)),
                asyncio.create_task(self._every(STATS_PERIOD, self._log_stats)),
            ]

            logger.info("Entering main control loop")
            await self._control_loop()

        except Exception as e:
            logger.error(f"Controller error: {e}", exc_info=True)
            raise
        finally:
            for task in timers:
                task.cancel()
            await asyncio.gather(*timers, return_exceptions=True)
            self._cleanup()

    def _init_hardware(self) -> bool:
        """Initialize all hardware."""
        logger.info("Initializing hardware...")

        if not self.motor.connect():
            logger.error("Failed to connect to driver board")
            return False

        if not self.camera.start():
            logger.error("Failed to start camera")
            return False

        # The game controller is optional: without radio, commands come from the web
        if self.radio is not None and not self.radio.start():
            logger.warning("Radio unavailable, commands via web only")

        logger.info("Hardware initialized")
        return True

    def _cleanup(self):
        """Cleanup on shutdown."""
        logger.info("Cleaning up...")

        self._running = False

        # Stop motors first
        self.motion.stop()
        if self.motor.is_connected:
            self.motor.disconnect()

        if self.camera.is_running:
            self.camera.stop()
        if self.radio is not None and self.radio.is_running:
            self.radio.stop()

        logger.info("Cleanup complete")

    def _shutdown(self):
        """Handle shutdown signal."""
        logger.info("Shutdown requested")
        self._running = False

    async def _control_loop(self):
        """Main control loop."""
        period = 1.0 / CONTROL_LOOP_HZ
        loop = asyncio.get_running_loop()

        while self._running:
            loop_start = loop.time()

            self.cycle()

            # Maintain loop rate
            elapsed = loop.time() - loop_start
            if elapsed > period:
                self._overruns += 1
            await asyncio.sleep(max(0, period - elapsed))

    async def _every(self, period: float, callback: Callable[[], None]):
        """Call a callback at a fixed period while running."""
        while self._running:
            await asyncio.sleep(period)
            callback()

    def _countdown(self):
        if self.session.tick():
            logger.info("Match over")

    def _log_stats(self):
        """Log periodic statistics."""
        waypoint = self.motion.waypoint
        logger.info(
            f"Loop {self._loop_count}: "
            f"Game={self.session.state.name}, "
            f"Remaining={self.session.remaining_time():.0f}s, "
            f"State={self.state_machine.state.name}, "
            f"Waypoint=({waypoint.distance:.0f}, {waypoint.bearing:.0f}°), "
            f"Motion={self.motion.status.name}, "
            f"Overruns={self._overruns}"
        )

    def status(self) -> dict:
        """Telemetry snapshot for the web interface."""
        now = self.clock()
        pose = self.arena.pose
        return {
            "robot": self.state_machine.summary(),
            "game": self.session.summary(now),
            "pose": {
                "x": round(pose.x, 1),
                "y": round(pose.y, 1),
                "confidence": pose.confidence,
                "reliable": self.arena.is_position_reliable(now),
            },
            "detections": {
                "balls": len(self.detections.balls),
                "markers": [m.class_id for m in self.detections.markers],
                "peers": len(self.detections.peers),
            },
            "pid": {
                "heading": self.motion.heading_pid.state(),
                "speed": self.motion.speed_pid.state(),
            },
            "heading": self.motor.heading,
            "loop_count": self._loop_count,
        }
