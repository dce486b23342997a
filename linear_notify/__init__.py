"""Linear desktop notifications."""

__version__ = "1.0.0"
