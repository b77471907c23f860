"""
Mission layer - match mode, state and countdown.
"""

from .session import GameMode, GameSession, GameState

__all__ = ["GameMode", "GameSession", "GameState"]
