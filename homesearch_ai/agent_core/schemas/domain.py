from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import ConfigDict, Field

from .base import BaseSchema, FrozenSchema


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ChatRole(str, Enum):
    system = "system"
    user = "user"
    assistant = "assistant"


class CapabilityName(str, Enum):
    filtering = "filtering"
    geospatial = "geospatial"
    property_detail = "property_detail"
    response = "response"


class LogicalOperator(str, Enum):
    AND = "AND"
    OR = "OR"


class TurnStatus(str, Enum):
    received = "received"
    planned = "planned"
    validated = "validated"
    rejected = "rejected"
    executing = "executing"
    merged = "merged"
    failed = "failed"
    terminal = "terminal"


class ChatMessage(FrozenSchema):
    role: ChatRole
    content: str


class ExecutionInput(FrozenSchema):
    """Input handed to a single capability invocation.

    A new instance is built for every step; steps never mutate the input
    they received.
    """

    query: str
    history: List[ChatMessage] = Field(default_factory=list)
    parameters: Dict[str, Any] = Field(default_factory=dict)

    def param(self, key: str, default: Any = None) -> Any:
        value = self.parameters.get(key)
        return default if value is None else value


class ExecutionOutput(BaseSchema):
    """Result of a capability invocation.

    ``missing_inputs`` is a sentinel: when it is non-empty the pipeline stops
    and the output is returned to the caller as a clarification.
    """

    response: str
    data: Dict[str, Any] = Field(default_factory=dict)
    missing_inputs: Optional[List[str]] = None

    @property
    def needs_input(self) -> bool:
        return bool(self.missing_inputs)

    @property
    def failed(self) -> bool:
        return "error" in self.data


class Plan(FrozenSchema):
    capabilities: List[str] = Field(default_factory=list)
    parameters: Dict[str, Any] = Field(default_factory=dict)
    reasoning: str = ""
    continuation: bool = False


class SearchContext(BaseSchema):
    """Turn-spanning memory of a session's search parameters."""

    query: Optional[str] = None
    location: Any = None
    amenities: Optional[List[str]] = None
    logical_operator: Optional[str] = None
    last_filter: Optional[Dict[str, Any]] = None
    last_capabilities: List[str] = Field(default_factory=list)
    continuation: bool = False
    last_updated: datetime = Field(default_factory=_utc_now)


class GeoPoint(FrozenSchema):
    lat: float
    lng: float
    name: str = ""
    category: str = "place"


class Coordinates(BaseSchema):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    lat: Optional[float] = None
    lng: Optional[float] = None


class PlaceResult(BaseSchema):
    """A single place returned by the places collaborator."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = ""
    name: str = ""
    address: str = ""
    location: Coordinates = Field(default_factory=Coordinates)
    types: List[str] = Field(default_factory=list)
    rating: Optional[float] = None
    user_ratings_total: Optional[int] = Field(default=None, alias="userRatingsTotal")
    vicinity: Optional[str] = None
    distance: Optional[float] = None


class NearbyPlaces(BaseSchema):
    """Places found for one requested amenity category."""

    category: str
    results: List[PlaceResult] = Field(default_factory=list)
    status: str = "OK"


class QueryResult(BaseSchema):
    """Page of records returned by the record store."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    records: List[Dict[str, Any]] = Field(default_factory=list)
    pagination: Dict[str, Any] = Field(default_factory=dict)
    statistics: Dict[str, Any] = Field(default_factory=dict)
