"""CycleScope secular chart capture and analysis service."""

__version__ = "1.0.0"
