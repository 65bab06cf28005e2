"""Utility modules for device-conform."""
from .logging_config import PerfStats, setup_logging, timed_section_sync

__all__ = ["PerfStats", "setup_logging", "timed_section_sync"]
