from __future__ import annotations

"""Collaborator interface contracts.

The orchestrator depends on these Protocols instead of concrete clients.

Contract guidelines
-------------------

- All methods are async.
- Implementations own their transport, retries and timeouts; the
  orchestrator never retries a collaborator call.
- Implementations should raise ``CollaboratorError`` for transport or
  provider failures so callers can degrade deterministically.
"""

from typing import Any, Dict, List, Optional, Protocol, Sequence, Type, TypeVar

from ..schemas.domain import ChatMessage, PlaceResult, QueryResult

T = TypeVar("T")


class LanguageModelClient(Protocol):
    """Black-box language model returning free text or a typed judgment."""

    async def chat_text(self, messages: Sequence[ChatMessage]) -> str:
        """
        Generate a free-text reply.

        Args:
            messages: Ordered chat messages (system/user/assistant).

        Returns:
            The model's reply text.
        """
        ...

    async def chat_structured(self, messages: Sequence[ChatMessage], output_type: Type[T]) -> T:
        """
        Generate a structured judgment.

        Args:
            messages: Ordered chat messages (system/user/assistant).
            output_type: Pydantic model describing the expected output.

        Returns:
            An instance of ``output_type``.
        """
        ...


class RecordStore(Protocol):
    """Query execution over the property records."""

    async def execute_query(
        self, filter_expression: Dict[str, Any], options: Optional[Dict[str, Any]] = None
    ) -> QueryResult:
        """
        Execute a filter expression.

        Args:
            filter_expression: Document-style filter (field → condition).
            options: Optional execution options such as ``sort``.

        Returns:
            Matching records with pagination and statistics.
        """
        ...

    async def get_record(self, record_id: str) -> Optional[Dict[str, Any]]:
        """
        Fetch a single record by id.

        Returns:
            The record, or None when no record has that id.
        """
        ...


class PlacesClient(Protocol):
    """Geocoding and nearby places lookup."""

    async def find_nearby(
        self, categories: List[str], reference_location: Any, radius_meters: int
    ) -> List[PlaceResult]:
        """
        Find places of the given categories around a reference location.

        Args:
            categories: Place categories to search for.
            reference_location: Free-text location or coordinates mapping.
            radius_meters: Search radius around the reference location.

        Returns:
            Places found, possibly empty.
        """
        ...
