"""FullFocus - full-screen meeting alerts from your calendar."""

__version__ = "0.1.0"
