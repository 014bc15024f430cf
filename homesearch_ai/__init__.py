"""Conversational property search orchestration.

The ``agent_core`` package routes a free-text request through planning,
validation, capability execution and result merging. ``core`` holds the
shared logging and configuration utilities.
"""

__version__ = "0.1.0"
