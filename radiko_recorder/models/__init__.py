"""
Data Models Layer.

This package contains the Pydantic models and dataclasses that define the core
data structures used throughout the application, such as configuration,
recording requests and statistics.
"""

from .config import ProviderConfig, RecorderConfig
from .request import RecordingRequest
from .stats import RecordingStats

__all__ = ["ProviderConfig", "RecorderConfig", "RecordingRequest", "RecordingStats"]
