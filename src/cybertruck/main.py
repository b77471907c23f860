#!/usr/bin/env python3
"""
Arena collector robot - Main Entry Point

Usage:
    cybertruck              # Run robot controller, commands over radio
    cybertruck --web        # Also serve the debug web interface
    cybertruck --no-radio   # Commands from the web interface only
"""

import argparse
import asyncio
import logging

from cybertruck.config import GAME_DURATION, RADIO_PORT, WEB_HOST, WEB_PORT


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Arena collector robot controller")
    parser.add_argument(
        "--web",
        action="store_true",
        help="Enable web interface for debugging",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=WEB_PORT,
        help="Web interface port",
    )
    parser.add_argument(
        "--no-radio",
        action="store_true",
        help="Do not listen to the game controller radio",
    )
    parser.add_argument(
        "--radio-port",
        default=RADIO_PORT,
        help="Serial port of the radio bridge",
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=GAME_DURATION,
        help="Match duration in seconds",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    args = parser.parse_args()

    # Setup logging
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info("Arena collector robot starting...")

    from cybertruck.comm import RadioLink
    from cybertruck.control.controller import Controller

    controller = Controller(duration=args.duration)
    if not args.no_radio:
        controller.radio = RadioLink(controller.inbox, port=args.radio_port)

    if not args.web:
        asyncio.run(controller.run())
        return

    from cybertruck.web import run_server

    async def run_with_web():
        runner = await run_server(controller=controller, host=WEB_HOST, port=args.port)
        try:
            await controller.run()
        finally:
            await runner.cleanup()

    logger.info(f"Web interface enabled on port {args.port}")
    asyncio.run(run_with_web())


if __name__ == "__main__":
    main()
