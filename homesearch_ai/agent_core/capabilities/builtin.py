from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field
from pydantic_core import to_jsonable_python

from ..clients.interfaces import LanguageModelClient, PlacesClient, RecordStore
from ..errors import CollaboratorError
from ..geo import (
    DEFAULT_LOOKUP_RADIUS_METERS,
    coerce_nearby,
    filter_by_proximity,
    location_filter,
    lookup_nearby,
    proximity_filter,
)
from ..runtime.notes import detect_empty_results
from ..schemas.domain import CapabilityName, ExecutionInput, ExecutionOutput, LogicalOperator
from .base import Capability, conversation, system, user

logger = logging.getLogger(__name__)

FILTER_SYSTEM_PROMPT = (
    "Eres un experto en búsqueda de propiedades inmobiliarias. Traduce la petición del usuario a un filtro "
    "de consulta para una colección de propiedades con campos como propertyType (Casas, Departamentos, "
    "Terrenos), operationType (Venta, Renta), price, bedrooms, bathrooms, location.city, location.state y "
    "features. Responde con:\n"
    "- message: una respuesta breve para el usuario,\n"
    "- filter: el filtro de consulta,\n"
    "- sort / projection: opcionales,\n"
    "- extra_actions: acciones adicionales opcionales.\n"
    "Nunca inventes resultados."
)

GEO_SYSTEM_PROMPT = (
    "Eres un asistente inmobiliario experto en ubicaciones. Describe de forma natural y breve, en español, "
    "los lugares cercanos o las propiedades encontradas cerca de ellos. Menciona siempre la cantidad exacta "
    "que se te indique."
)

PROPERTY_SYSTEM_PROMPT = (
    "Eres un asistente inmobiliario. Responde la pregunta del usuario sobre la siguiente propiedad usando "
    "solo estos datos:\n{details}"
)

RESPONSE_SYSTEM_PROMPT = (
    "Eres un asistente inmobiliario amable. Redacta la respuesta final para el usuario en español, basada "
    "únicamente en los datos proporcionados."
)

NO_RESULTS_FALLBACK = (
    "Lo siento, no encontré propiedades que coincidan con tu búsqueda. ¿Podrías intentar con otros criterios, "
    "como una zona diferente o un rango de precio más amplio?"
)

PROPERTY_TYPE_KEYWORDS: Tuple[Tuple[str, str], ...] = (("casa", "Casas"), ("departamento", "Departamentos"))
OPERATION_TYPE_KEYWORDS: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("renta", "rentar"), "Renta"),
    (("venta", "comprar"), "Venta"),
)


def _dump(value: Any) -> str:
    return json.dumps(to_jsonable_python(value, fallback=str), ensure_ascii=False)


def basic_filter(query: str, location: Any = None) -> Dict[str, Any]:
    """Keyword-derived filter used when the model produced no filter.

    Falls back to ``{"status": "available"}`` when nothing can be derived.
    """
    lowered = (query or "").lower()
    out: Dict[str, Any] = {}
    for keyword, value in PROPERTY_TYPE_KEYWORDS:
        if keyword in lowered:
            out["propertyType"] = value
            break
    if isinstance(location, str) and location.strip():
        out.update(location_filter(location))
    for keywords, value in OPERATION_TYPE_KEYWORDS:
        if any(k in lowered for k in keywords):
            out["operationType"] = value
            break
    return out or {"status": "available"}


def _amenities_text(amenities: Sequence[str], operator: str) -> str:
    joiner = " Y " if operator == LogicalOperator.AND.value else " O "
    return joiner.join(str(a) for a in amenities)


class FilterJudgment(BaseModel):
    message: str = ""
    filter: Dict[str, Any] = Field(default_factory=dict)
    sort: Optional[Dict[str, int]] = None
    projection: Optional[Dict[str, int]] = None
    extra_actions: Optional[List[Dict[str, Any]]] = None


@dataclass(frozen=True)
class FilteringCapability(Capability):
    """
    Capability translating structural requirements into a record-store filter.

    The filter is produced by the language model. An empty filter, or an
    unavailable model, falls back to ``basic_filter``.
    """

    llm: LanguageModelClient
    name: str = CapabilityName.filtering.value
    description: str = "Translates property requirements (type, price, rooms, operation) into a structured filter"
    required_inputs: Tuple[str, ...] = ("query",)

    async def applies(self, inp: ExecutionInput) -> bool:
        lowered = inp.query.lower()
        return "cerca" not in lowered and "cercano" not in lowered

    async def run(self, inp: ExecutionInput) -> ExecutionOutput:
        """
        Produce the filter for the input query.

        Args:
            inp: The execution input. Recognized parameters:
                - query (str): free-text requirements; defaults to ``inp.query``.
                - location: used by the keyword fallback.
                - proximity_filter (dict): location/proximity fragment already
                  built by a geospatial step, shown to the model as context.

        Returns:
            ExecutionOutput with ``filter`` and, when produced, ``sort``,
            ``projection`` and ``extra_actions``.
        """
        messages = conversation(FILTER_SYSTEM_PROMPT, inp)
        fragment = inp.param("proximity_filter")
        if fragment:
            messages.insert(
                -1,
                system(
                    "La ubicación y la cercanía ya están resueltas con este fragmento; no lo repitas en tu "
                    f"filtro: {_dump(fragment)}"
                ),
            )

        try:
            judgment = await self.llm.chat_structured(messages, FilterJudgment)
        except CollaboratorError as e:
            logger.warning(f"Filter generation failed, using keyword fallback: {e}")
            judgment = FilterJudgment()

        query = str(inp.param("query", inp.query))
        expression = dict(judgment.filter)
        if not expression:
            logger.warning(f"Empty filter for query '{query}', deriving a basic filter")
            expression = basic_filter(query, inp.param("location"))

        data: Dict[str, Any] = {"filter": expression}
        for key in ("sort", "projection", "extra_actions"):
            value = getattr(judgment, key)
            # absent options must not shadow values from earlier steps
            if value is not None:
                data[key] = value
        return ExecutionOutput(
            response=judgment.message or "Aquí tienes algunas propiedades que podrían interesarte.",
            data=data,
        )


@dataclass(frozen=True)
class GeospatialCapability(Capability):
    """
    Capability answering proximity questions ("near a hospital").

    Looks up nearby places for every amenity category (unless the lookups are
    already in ``nearby_places``), narrows a candidate set in ``properties``
    by proximity when one is given, and emits the location filter tagged with
    the proximity marker.
    """

    llm: LanguageModelClient
    places: PlacesClient
    radius_meters: int = DEFAULT_LOOKUP_RADIUS_METERS
    name: str = CapabilityName.geospatial.value
    description: str = "Finds places of interest near a location and filters properties by proximity to them"
    required_inputs: Tuple[str, ...] = ("location", "amenities")

    async def applies(self, inp: ExecutionInput) -> bool:
        lowered = inp.query.lower()
        return "cerca" in lowered or "cercano" in lowered

    async def run(self, inp: ExecutionInput) -> ExecutionOutput:
        location = inp.param("location")
        amenities = list(inp.param("amenities", []))
        operator = str(inp.param("logical_operator", LogicalOperator.OR.value))

        if not location or not amenities:
            missing = [k for k, v in (("location", location), ("amenities", amenities)) if not v]
            return ExecutionOutput(
                response="Necesito más información para buscar lugares cercanos.", missing_inputs=missing
            )

        preset = inp.param("nearby_places")
        if preset is not None:
            nearby = coerce_nearby(preset)
        else:
            nearby = await lookup_nearby(self.places, amenities, location, self.radius_meters)

        data: Dict[str, Any] = {
            "nearby_places": [batch.model_dump(mode="json") for batch in nearby],
            "location": location,
            "amenities": amenities,
            "logical_operator": operator,
            "filter": proximity_filter(location, nearby, operator),
        }

        amenities_text = _amenities_text(amenities, operator)
        candidates = inp.parameters.get("properties")
        if isinstance(candidates, list):
            filtered = filter_by_proximity(candidates, nearby, operator)
            logger.debug(f"Proximity narrowed {len(candidates)} candidates to {len(filtered)}")
            data["filtered_properties"] = filtered
            summary = f"Encontré {len(filtered)} propiedades cerca de {amenities_text} en {location}."
        else:
            found = sum(len(batch.results) for batch in nearby)
            summary = f"Encontré {found} lugares ({amenities_text}) cerca de {location}."

        response = await self._describe(inp, summary, data["nearby_places"])
        return ExecutionOutput(response=response, data=data)

    async def _describe(self, inp: ExecutionInput, summary: str, nearby: List[Dict[str, Any]]) -> str:
        messages = [
            system(GEO_SYSTEM_PROMPT),
            *inp.history,
            user(
                f"{summary} Lugares de referencia: {_dump(nearby)}. Genera una respuesta natural para el usuario "
                f'que preguntó: "{inp.query}".'
            ),
        ]
        try:
            text = await self.llm.chat_text(messages)
        except CollaboratorError as e:
            logger.warning(f"Could not describe nearby places, using summary: {e}")
            return summary
        return text.strip() or summary


@dataclass(frozen=True)
class PropertyDetailCapability(Capability):
    """Capability describing a single property looked up by id."""

    llm: LanguageModelClient
    store: RecordStore
    name: str = CapabilityName.property_detail.value
    description: str = "Answers questions about one specific property identified by its id"
    required_inputs: Tuple[str, ...] = ("property_id",)

    async def applies(self, inp: ExecutionInput) -> bool:
        return inp.param("property_id") is not None

    async def run(self, inp: ExecutionInput) -> ExecutionOutput:
        property_id = inp.param("property_id")
        if property_id is None:
            return ExecutionOutput(
                response="Necesito saber de qué propiedad estás hablando.", missing_inputs=["property_id"]
            )

        record = await self.store.get_record(str(property_id))
        if record is None:
            return ExecutionOutput(response="No pude encontrar esa propiedad.", data={"error": "Property not found"})

        details = format_property(record)
        messages = conversation(PROPERTY_SYSTEM_PROMPT.format(details=details), inp)
        try:
            response = await self.llm.chat_text(messages)
        except CollaboratorError as e:
            logger.warning(f"Could not describe property {property_id}: {e}")
            response = f"Esta es la información de la propiedad:\n{details}"
        return ExecutionOutput(response=response, data={"property": record})


def format_property(record: Dict[str, Any]) -> str:
    lines = []
    for key in ("title", "propertyType", "operationType", "price", "bedrooms", "bathrooms", "description"):
        if record.get(key) not in (None, ""):
            lines.append(f"- {key}: {record[key]}")
    location = record.get("location")
    if isinstance(location, dict):
        place = ", ".join(str(location[k]) for k in ("address", "city", "state") if location.get(k))
        if place:
            lines.append(f"- location: {place}")
    return "\n".join(lines) or _dump(record)


@dataclass(frozen=True)
class ResponseCapability(Capability):
    """
    Capability polishing the final answer.

    Input parameters ``response`` and ``data`` carry a finished answer. When
    ``response`` is absent the whole parameter bag is treated as data. Empty
    result sets get an apologetic reply that suggests alternatives; otherwise
    the reply is personalized with the results found.
    """

    llm: LanguageModelClient
    name: str = CapabilityName.response.value
    description: str = "Verifies and rewrites the final answer so it matches the results found"
    required_inputs: Tuple[str, ...] = ()

    async def applies(self, inp: ExecutionInput) -> bool:
        return bool(inp.param("response")) and isinstance(inp.parameters.get("data"), dict)

    async def run(self, inp: ExecutionInput) -> ExecutionOutput:
        original = str(inp.param("response", ""))
        data = inp.parameters.get("data")
        if not isinstance(data, dict):
            data = {k: v for k, v in inp.parameters.items() if k != "response"}

        if not has_results(data):
            logger.debug("No results in data, generating an apologetic reply")
            instruction = (
                "La búsqueda no encontró propiedades. Discúlpate, explica brevemente los criterios usados y "
                f"sugiere cómo ajustarlos. Criterios: {_dump(data.get('filter') or {})}"
            )
            fallback = NO_RESULTS_FALLBACK
            reasoning = "Generated apologetic response for no properties found"
        else:
            instruction = (
                f"Respuesta preliminar: \"{original}\"\nDatos: {_dump(_summary_data(data))}\n"
                "Redacta una respuesta personalizada que mencione las propiedades encontradas."
            )
            fallback = original or "Aquí tienes las propiedades que encontré para ti."
            reasoning = "Generated personalized response based on properties found"

        messages = [system(RESPONSE_SYSTEM_PROMPT), *inp.history, user(f"{inp.query}\n\n{instruction}")]
        try:
            text = (await self.llm.chat_text(messages)).strip() or fallback
        except CollaboratorError as e:
            logger.warning(f"Response polish failed, using fallback: {e}")
            text = fallback

        return ExecutionOutput(
            response=text,
            data={**data, "original_response": original, "enhancement_reasoning": reasoning},
        )


def has_results(data: Dict[str, Any]) -> bool:
    """True when the data bag carries at least one record."""
    if data.get("property"):
        return True
    empty = detect_empty_results(data)
    return empty.has_results and not empty.is_empty


def _summary_data(data: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key in ("properties", "filtered_properties"):
        value = data.get(key)
        if isinstance(value, list):
            out[key] = value[:5]
            out[f"{key}_count"] = len(value)
    for key in ("validated_count", "total_count", "location", "amenities", "property"):
        if key in data:
            out[key] = data[key]
    return out
