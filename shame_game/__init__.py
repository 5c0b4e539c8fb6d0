"""Shame Game - social wake-up accountability backend"""

__version__ = "1.0.0"
