"""
Web Layer - Debug and remote control interface.

Provides:
- Status and telemetry (JSON)
- Parameter tuning
- Game controller commands
- Manual maneuvers

NOTE: Keep it OFF during matches unless the rules allow wireless.
"""

from .server import create_app, run_server

__all__ = ["create_app", "run_server"]
