"""
Communication layer - game controller commands.
"""

from .commands import Command, CommandInbox
from .radio import RadioLink

__all__ = ["Command", "CommandInbox", "RadioLink"]
