"""Domain schemas shared across the agent core."""

from .base import BaseSchema, FrozenSchema
from .domain import (
    CapabilityName,
    ChatMessage,
    ChatRole,
    Coordinates,
    ExecutionInput,
    ExecutionOutput,
    GeoPoint,
    LogicalOperator,
    NearbyPlaces,
    PlaceResult,
    Plan,
    QueryResult,
    SearchContext,
    TurnStatus,
)

__all__ = [
    "BaseSchema",
    "FrozenSchema",
    "CapabilityName",
    "ChatMessage",
    "ChatRole",
    "Coordinates",
    "ExecutionInput",
    "ExecutionOutput",
    "GeoPoint",
    "LogicalOperator",
    "NearbyPlaces",
    "PlaceResult",
    "Plan",
    "QueryResult",
    "SearchContext",
    "TurnStatus",
]
