from __future__ import annotations

"""Chaining notes handed from one capability to the next.

When the pipeline chains capabilities, the next step sees the previous
step's outcome as a system message appended to its history. The note states
the response text, result counts, the filter that was produced, and a
warning when the previous text does not acknowledge an empty result set.
"""

import json
from dataclasses import dataclass
from typing import Any, List, Mapping, Sequence

from pydantic_core import to_jsonable_python

from ..schemas.domain import ChatMessage, ChatRole, ExecutionOutput

NOTE_HEADER = "Previous capability result information:"

ACKNOWLEDGEMENT_PHRASES = (
    "no encontré",
    "no pude encontrar",
    "no he encontrado",
    "no hay",
    "no existen",
    "no se encontraron",
    "no se encontró",
    "no encontramos",
    "no tenemos",
    "lo siento",
    "disculpa",
    "lamento",
)

ALTERNATIVE_PHRASES = (
    "intenta",
    "podrías",
    "puedes",
    "considera",
    "quizás",
    "tal vez",
    "otra",
    "diferente",
    "alternativa",
    "modificar",
    "cambiar",
    "ajustar",
)

# Record lists a capability may report, in priority order for counting.
RESULT_KEYS = ("properties", "filtered_properties", "validated_properties")


@dataclass(frozen=True)
class EmptyResults:
    is_empty: bool
    has_results: bool
    count: int


def detect_empty_results(data: Mapping[str, Any]) -> EmptyResults:
    """Inspect a data bag for record lists and counters that report zero results."""
    is_empty = False
    has_results = False
    count = 0
    for key in RESULT_KEYS:
        if key not in data:
            continue
        value = data[key]
        if not has_results:
            count = len(value) if isinstance(value, list) else 0
            has_results = True
        if isinstance(value, list) and not value:
            is_empty = True
    for key in ("validated_count", "total_count"):
        if key in data and data[key] == 0:
            is_empty = True
    return EmptyResults(is_empty=is_empty, has_results=has_results, count=count)


def acknowledges_empty_results(response: str) -> bool:
    """True when the text both admits nothing was found and suggests an alternative."""
    lowered = (response or "").lower()
    return any(p in lowered for p in ACKNOWLEDGEMENT_PHRASES) and any(p in lowered for p in ALTERNATIVE_PHRASES)


def _dump(value: Any) -> str:
    return json.dumps(to_jsonable_python(value, fallback=str), ensure_ascii=False, indent=2)


def _search_criteria(data: Mapping[str, Any]) -> str:
    parts: List[str] = []
    if data.get("filter"):
        parts.append(_dump(data["filter"]))
    location = data.get("location")
    if location:
        parts.append(f"Location: {location if isinstance(location, str) else _dump(location)}")
    amenities = data.get("amenities")
    if amenities:
        parts.append(f"Amenities: {', '.join(map(str, amenities)) if isinstance(amenities, list) else amenities}")
    return "\n\n".join(parts) or "No specific search criteria found in data"


def describe_output(output: ExecutionOutput) -> str:
    data = output.data or {}
    empty = detect_empty_results(data)

    lines = [NOTE_HEADER, f'Response: "{output.response}"']
    if empty.has_results:
        lines.append(f"Search Results: {'NO PROPERTIES FOUND' if empty.is_empty else f'{empty.count} properties found'}")
    if data.get("filter") is not None:
        lines.append(f"Search Query: {_dump(data['filter'])}")
    if "filtered_properties" in data:
        value = data["filtered_properties"]
        lines.append(f"Filtered Properties: {len(value) if isinstance(value, list) else 'not a list'}")
    if "validated_count" in data:
        lines.append(f"Validated Properties Count: {data['validated_count']}")
    if "total_count" in data:
        lines.append(f"Total Properties Count: {data['total_count']}")

    if empty.is_empty and not acknowledges_empty_results(output.response):
        lines.append("")
        lines.append(
            "WARNING: The response indicates success but NO PROPERTIES were found in the search results.\n"
            "The response should acknowledge that no properties were found and suggest alternatives.\n"
            f"Search criteria: {_search_criteria(data)}"
        )

    lines.append("")
    lines.append(f"Data: {_dump(data)}")
    lines.append("")
    lines.append("Use this information to keep your answer consistent with what previous steps found.")
    return "\n".join(lines)


def append_previous_result(history: Sequence[ChatMessage], previous: ExecutionOutput) -> List[ChatMessage]:
    """Return a new history with a system note describing ``previous``."""
    return [*history, ChatMessage(role=ChatRole.system, content=describe_output(previous))]
