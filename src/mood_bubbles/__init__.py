"""Emotion-adaptive bubble popping game core and its leaderboard backend."""

__version__ = "0.1.0"
