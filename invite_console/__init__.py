"""Admin session and invite review core for the moderation console."""

__version__ = "1.0.0"
