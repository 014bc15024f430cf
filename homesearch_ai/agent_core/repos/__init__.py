"""Persistence abstractions for conversational search context.

 - ``interfaces``: ``ContextStore`` Protocol consumed by the orchestrator.
 - ``memory``: ``InMemoryContextStore``, a process-local implementation.

 The storage format of production stores is owned by their implementations.
 """

from .interfaces import ContextStore
from .memory import InMemoryContextStore

__all__ = [
    "ContextStore",
    "InMemoryContextStore",
]
