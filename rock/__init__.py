"""Local git repository tracking for rock."""

__version__ = "0.1.0"
