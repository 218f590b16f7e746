"""Version information for the meeting protocol generator."""

__version__ = "1.0.0"
