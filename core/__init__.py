"""
Seedance Studio Core Components

Provides foundational infrastructure for the video job lifecycle:
- Environment-driven configuration
- Cancellation tokens for long-running polls
"""

from .cancellation import CancellationToken
from .config import Config, get_config

__all__ = ["CancellationToken", "Config", "get_config"]
