from __future__ import annotations

"""In-memory ``ContextStore``.

Suitable for tests and single-process deployments. Contexts live for the
lifetime of the process.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from ..planning.merge import apply_context_update
from ..schemas.domain import SearchContext, _utc_now

logger = logging.getLogger(__name__)


class InMemoryContextStore:
    def __init__(self) -> None:
        self._contexts: Dict[str, SearchContext] = {}
        self._lock = asyncio.Lock()

    async def get(self, session_id: str) -> Optional[SearchContext]:
        ctx = self._contexts.get(session_id)
        return ctx.model_copy(deep=True) if ctx is not None else None

    async def put(self, session_id: str, update: Dict[str, Any]) -> SearchContext:
        async with self._lock:
            merged = apply_context_update(self._contexts.get(session_id), update)
            merged.last_updated = _utc_now()
            self._contexts[session_id] = merged
            logger.debug(f"Stored search context for session {session_id}")
            return merged.model_copy(deep=True)

    async def delete(self, session_id: str) -> None:
        async with self._lock:
            self._contexts.pop(session_id, None)
