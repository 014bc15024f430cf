from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Sequence

import pytest

from homesearch_ai.agent_core.errors import CollaboratorError
from homesearch_ai.agent_core.schemas.domain import ChatMessage, ChatRole, PlaceResult, QueryResult


class FakeLanguageModel:
    """Scripted ``LanguageModelClient``.

    ``structured`` maps an output type name to a value (dict, model instance or
    callable receiving the messages). ``chat_text`` echoes the last user
    message unless ``text`` is given.
    """

    def __init__(
        self,
        *,
        structured: Optional[Dict[str, Any]] = None,
        text: Any = None,
        fail_text: bool = False,
        fail_structured: bool = False,
    ) -> None:
        self.structured = dict(structured or {})
        self.text = text
        self.fail_text = fail_text
        self.fail_structured = fail_structured
        self.text_calls: List[List[ChatMessage]] = []
        self.structured_calls: List[tuple[List[ChatMessage], Any]] = []

    async def chat_text(self, messages: Sequence[ChatMessage]) -> str:
        self.text_calls.append(list(messages))
        if self.fail_text:
            raise CollaboratorError("language_model", "unavailable")
        if callable(self.text):
            return self.text(messages)
        if self.text is not None:
            return self.text
        return next(m.content for m in reversed(messages) if m.role == ChatRole.user)

    async def chat_structured(self, messages: Sequence[ChatMessage], output_type: Any) -> Any:
        self.structured_calls.append((list(messages), output_type))
        if self.fail_structured:
            raise CollaboratorError("language_model", "unavailable")
        value = self.structured.get(output_type.__name__)
        if callable(value):
            value = value(messages)
        if value is None:
            return output_type()
        if isinstance(value, dict):
            return output_type.model_validate(value)
        return value


class FakeRecordStore:
    def __init__(self, records: Optional[List[Dict[str, Any]]] = None, *, fail: bool = False) -> None:
        self.records = list(records or [])
        self.fail = fail
        self.queries: List[tuple[Dict[str, Any], Optional[Dict[str, Any]]]] = []
        self.lookups: List[str] = []

    async def execute_query(
        self, filter_expression: Dict[str, Any], options: Optional[Dict[str, Any]] = None
    ) -> QueryResult:
        self.queries.append((filter_expression, options))
        if self.fail:
            raise CollaboratorError("record_store", "unreachable")
        return QueryResult(records=list(self.records), pagination={"total": len(self.records)})

    async def get_record(self, record_id: str) -> Optional[Dict[str, Any]]:
        self.lookups.append(record_id)
        return next((r for r in self.records if str(r.get("_id")) == record_id), None)


class FakePlaces:
    def __init__(self, by_category: Optional[Dict[str, List[Dict[str, Any]]]] = None, *, failing: Sequence[str] = ()) -> None:
        self.by_category = dict(by_category or {})
        self.failing = set(failing)
        self.calls: List[tuple[List[str], Any, int]] = []

    async def find_nearby(self, categories: List[str], reference_location: Any, radius_meters: int) -> List[PlaceResult]:
        self.calls.append((list(categories), reference_location, radius_meters))
        category = categories[0]
        if category in self.failing:
            raise CollaboratorError("places", f"lookup failed for {category}")
        return [PlaceResult.model_validate(p) for p in self.by_category.get(category, [])]


def place(name: str, lat: float, lng: float, *types: str) -> Dict[str, Any]:
    return {"id": name, "name": name, "location": {"lat": lat, "lng": lng}, "types": list(types)}


def record(record_id: str, lat: Optional[float] = None, lng: Optional[float] = None, **fields: Any) -> Dict[str, Any]:
    out: Dict[str, Any] = {"_id": record_id, **fields}
    if lat is not None and lng is not None:
        out["location"] = {"city": "Tlaquepaque", "coordinates": {"lat": lat, "lng": lng}}
    return out


@pytest.fixture
def make_llm() -> Callable[..., FakeLanguageModel]:
    return FakeLanguageModel


@pytest.fixture
def make_store() -> Callable[..., FakeRecordStore]:
    return FakeRecordStore


@pytest.fixture
def make_places() -> Callable[..., FakePlaces]:
    return FakePlaces


@pytest.fixture
def make_place() -> Callable[..., Dict[str, Any]]:
    return place


@pytest.fixture
def make_record() -> Callable[..., Dict[str, Any]]:
    return record
