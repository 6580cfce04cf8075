"""
Seedance Studio CLI Tools

Command-line helpers for the video generation runner.

Tools:
- progress_monitor: Real-time status rendering for a polled job
"""

from .progress_monitor import ProgressMonitor, format_observation

__all__ = ["ProgressMonitor", "format_observation"]
