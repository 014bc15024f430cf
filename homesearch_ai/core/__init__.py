"""
Core utilities and configuration for HomeSearch-AI.

This package provides core functionality including logging configuration
and environment-bound settings.
"""

from homesearch_ai.core.logging_config import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
