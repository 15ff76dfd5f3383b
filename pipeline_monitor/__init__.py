"""Client-side monitor for remote video processing jobs."""

__version__ = "0.1.0"
