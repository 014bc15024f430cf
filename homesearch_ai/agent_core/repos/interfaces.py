from __future__ import annotations

"""Repository interface contracts.

The orchestrator depends on these Protocols instead of a concrete
persistence implementation.

Contract guidelines
-------------------

- All methods are async.
- ``put`` applies a monotonic merge: a field already known is retained
  unless the update supplies a replacement, and ``None`` never erases.
- ``put`` stamps ``last_updated``.
- The orchestrator reads once at turn start and writes once at turn end.
"""

from typing import Any, Dict, Optional, Protocol

from ..schemas.domain import SearchContext


class ContextStore(Protocol):
    """Per-session search context."""

    async def get(self, session_id: str) -> Optional[SearchContext]:
        """
        Retrieve the context of a session.

        Args:
            session_id: The conversation session identifier.

        Returns:
            The stored SearchContext, or None for a new session.
        """
        ...

    async def put(self, session_id: str, update: Dict[str, Any]) -> SearchContext:
        """
        Merge a partial update into the session's context.

        Args:
            session_id: The conversation session identifier.
            update: Partial SearchContext fields.

        Returns:
            The context as stored after the merge.
        """
        ...

    async def delete(self, session_id: str) -> None:
        """
        Forget a session's context (explicit session end).

        Args:
            session_id: The conversation session identifier.
        """
        ...
