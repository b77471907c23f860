"""
Web server - aiohttp application for the debug interface.
"""

import logging

from aiohttp import web

from cybertruck.comm import Command
from cybertruck.config import WEB_HOST, WEB_PORT
from cybertruck.control.motion import MANEUVERS, move_straight
from cybertruck.decision import RobotState

logger = logging.getLogger(__name__)

# Maneuvers may only be played while the robot is not driving itself
IDLE_STATES = (RobotState.STOPPED, RobotState.WAITING)


class WebServer:
    """
    Debug web interface server.

    Provides:
    - Robot status (state, waypoint, motion, game, pose)
    - Parameter tuning
    - Game controller commands without the radio
    - Manual maneuvers while idle
    """

    def __init__(self, controller=None):
        """
        Args:
            controller: Optional Controller instance for live data
        """
        self.controller = controller
        self.app = web.Application()
        self._setup_routes()

    def _setup_routes(self):
        """Configure routes."""
        self.app.router.add_get("/api/status", self.api_status)

        self.app.router.add_get("/api/params", self.api_params_get)
        self.app.router.add_post("/api/params", self.api_params_set)

        self.app.router.add_post("/api/command", self.api_command)
        self.app.router.add_get("/api/maneuver", self.api_maneuver_list)
        self.app.router.add_post("/api/maneuver", self.api_maneuver)

    def _unavailable(self):
        return web.json_response({"error": "Controller not available"}, status=404)

    @staticmethod
    async def _read_json(request) -> dict:
        try:
            data = await request.json()
        except ValueError:
            raise web.HTTPBadRequest(
                text='{"error": "Invalid JSON"}', content_type="application/json"
            )
        if not isinstance(data, dict):
            raise web.HTTPBadRequest(
                text='{"error": "Expected a JSON object"}', content_type="application/json"
            )
        return data

    async def api_status(self, request):
        """Get current robot status."""
        if not self.controller:
            return web.json_response({"state": "unknown"})
        return web.json_response(self.controller.status())

    async def api_params_get(self, request):
        """Get current tunable parameters."""
        if not self.controller:
            return self._unavailable()
        return web.json_response(self.controller.params.to_dict())

    async def api_params_set(self, request):
        """Update tunable parameters. Include _save=true to persist to disk."""
        if not self.controller:
            return self._unavailable()

        data = await self._read_json(request)
        save = data.pop("_save", False)
        self.controller.params.update(**data)

        if save:
            self.controller.params.save()

        return web.json_response(self.controller.params.to_dict())

    async def api_command(self, request):
        """POST /api/command - {"command": "start"} as if sent by the game controller."""
        if not self.controller:
            return self._unavailable()

        data = await self._read_json(request)
        command = Command.parse(str(data.get("command", "")))
        if command is None:
            return web.json_response({"error": f"Unknown command: {data.get('command')}"}, status=400)

        self.controller.inbox.post(command)
        logger.info(f"Command {command.name} posted from web")
        return web.json_response({"ok": True, "command": command.name})

    async def api_maneuver_list(self, request):
        """GET /api/maneuver - Catalog of named maneuvers."""
        return web.json_response({
            name: [[s.throttle, s.steering, s.duration_ms] for s in m.steps]
            for name, m in MANEUVERS.items()
        })

    async def api_maneuver(self, request):
        """
        POST /api/maneuver - Play a maneuver and wait for it to finish.

        Body: {"name": "back_left"} for a catalog maneuver, or
        {"name": "straight", "value": 30} (cm) / {"name": "spin", "value": 90} (degrees).
        """
        if not self.controller:
            return self._unavailable()

        state = self.controller.state_machine.state
        motion = self.controller.motion
        if state not in IDLE_STATES or motion.blocking or motion.scripted:
            return web.json_response({"error": f"Robot busy ({state.name})"}, status=409)

        data = await self._read_json(request)
        name = data.get("name")
        if name == "spin":
            try:
                angle = float(data.get("value", 0))
            except (TypeError, ValueError):
                return web.json_response({"error": "Invalid maneuver value"}, status=400)
            motor = self.controller.motor
            logger.info(f"Spin {angle:.0f}° from web")
            reached = await motion.spin_to(angle, lambda: motor.heading)
            return web.json_response({"ok": True, "name": "spin", "reached": reached})

        try:
            if name == "straight":
                maneuver = move_straight(float(data.get("value", 0)))
            else:
                maneuver = MANEUVERS[name]
        except KeyError:
            return web.json_response({"error": f"Unknown maneuver: {name}"}, status=400)
        except (TypeError, ValueError):
            return web.json_response({"error": "Invalid maneuver value"}, status=400)

        logger.info(f"Maneuver '{maneuver.name}' ({maneuver.duration:.1f}s) from web")
        await motion.run_sequence(maneuver.steps)
        return web.json_response({"ok": True, "name": maneuver.name, "duration": maneuver.duration})


def create_app(controller=None) -> web.Application:
    """Create the web application."""
    server = WebServer(controller)
    return server.app


async def run_server(controller=None, host=WEB_HOST, port=WEB_PORT):
    """Run the web server."""
    app = create_app(controller)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    logger.info(f"Web server running at http://{host}:{port}")
    return runner
