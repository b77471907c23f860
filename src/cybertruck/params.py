"""
Runtime tunable parameters with JSON persistence.

All layers share one Parameters instance. The web interface
can modify values at runtime; changes take effect on the next
control cycle. Single-threaded asyncio means no locks needed.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

PARAMS_FILE = Path(__file__).parent / "params.json"


@dataclass
class Parameters:
    """Runtime tunable parameters."""

    # Heading loop (bearing -> steering degrees)
    heading_kp: float = 1.0
    heading_ki: float = 0.0
    heading_kd: float = 0.05

    # Speed loop (remaining distance -> throttle percent)
    speed_kp: float = 0.8
    speed_ki: float = 0.0
    speed_kd: float = 0.0

    # Target tracking: sharpen turn-in on near, off-axis targets
    tracking_gain: float = 2.0
    tracking_deadband: float = 10.0  # degrees
    tracking_near_distance: float = 80.0  # pixels from origin

    # Searching
    target_lost_delay: float = 1.0  # seconds before giving up on a target
    search_spin_delay: float = 1.0  # seconds before spinning
    search_spin_bearing: float = 90.0  # degrees
    search_distance: float = 50.0  # drives the spin throttle

    # Going home
    go_home_time: float = 20.0  # seconds left when heading back
    arrival_distance: float = 35.0  # cm
    home_slowdown_distance: float = 60.0  # cm
    home_slowdown_factor: float = 0.5
    obey_danger: bool = True

    # Grabber
    grabber_power: int = 50  # percent

    # Stall detection
    stall_threshold: float = 150.0  # mg

    # Ball colour (red, wraps around hue)
    ball_h_min1: int = 0
    ball_h_max1: int = 10
    ball_h_min2: int = 160
    ball_h_max2: int = 180
    ball_s_min: int = 100
    ball_v_min: int = 100

    # Peer robot colour (yellow)
    peer_h_min: int = 20
    peer_h_max: int = 35
    peer_s_min: int = 100
    peer_v_min: int = 100

    # Camera resolution (restart camera to apply changes)
    camera_width: int = 320
    camera_height: int = 240

    # Detection
    min_contour_area: int = 60

    def update(self, **kwargs):
        """Update parameters from dict (e.g., from web API)."""
        for key, value in kwargs.items():
            if hasattr(self, key):
                expected_type = type(getattr(self, key))
                try:
                    setattr(self, key, expected_type(value))
                except (TypeError, ValueError):
                    logger.warning(f"Invalid value for {key}: {value}")
            else:
                logger.warning(f"Unknown parameter: {key}")

    def save(self, path: Path = None):
        """Persist to JSON file."""
        path = path or PARAMS_FILE
        with open(path, "w") as f:
            json.dump(asdict(self), f, indent=2)
        logger.info(f"Parameters saved to {path}")

    @classmethod
    def load(cls, path: Path = None) -> Parameters:
        """Load from JSON file, or return defaults."""
        path = path or PARAMS_FILE
        if path.exists():
            try:
                with open(path) as f:
                    data = json.load(f)
                params = cls()
                params.update(**data)
                logger.info(f"Parameters loaded from {path}")
                return params
            except (OSError, ValueError) as e:
                logger.warning(f"Failed to load {path}: {e}, using defaults")
        return cls()

    def to_dict(self) -> dict:
        """Convert to dict for JSON API."""
        return asdict(self)
