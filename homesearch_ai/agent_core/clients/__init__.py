"""Collaborator contracts and adapters.

- ``LanguageModelClient``: free text and structured judgments.
- ``RecordStore``: filter execution and single-record lookup.
- ``PlacesClient``: nearby place lookup around a location.
- ``PydanticAILanguageModel``: ``LanguageModelClient`` backed by pydantic-ai.
"""

from .interfaces import LanguageModelClient, PlacesClient, RecordStore
from .pydantic_ai_client import PydanticAILanguageModel

__all__ = [
    "LanguageModelClient",
    "PlacesClient",
    "RecordStore",
    "PydanticAILanguageModel",
]
