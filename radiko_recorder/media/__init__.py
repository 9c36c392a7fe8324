"""
Media Processing Layer.

This package is responsible for all media file operations, including
segment downloading, delegation to an external encoder, and integrity
validation.
"""

from .downloader import SegmentFetcher
from .encoder import ExternalEncoder
from .integrity import OutputIntegrityChecker

__all__ = ["ExternalEncoder", "OutputIntegrityChecker", "SegmentFetcher"]
