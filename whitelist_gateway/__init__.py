"""Connection authorization gateway with temporary access requests."""

__version__ = "1.0.0"
