from __future__ import annotations

from typing import Any

import pytest

from homesearch_ai.agent_core.capabilities.builtin import (
    NO_RESULTS_FALLBACK,
    FilteringCapability,
    GeospatialCapability,
    PropertyDetailCapability,
    ResponseCapability,
    basic_filter,
    has_results,
)
from homesearch_ai.agent_core.geo import PROXIMITY_MARKER_KEY
from homesearch_ai.agent_core.merger import ResultMerger
from homesearch_ai.agent_core.schemas.domain import ChatRole, ExecutionInput

BASE_LAT, BASE_LNG = 20.72, -103.38


def _inp(query: str, /, **params: Any) -> ExecutionInput:
    return ExecutionInput(query=query, parameters=params)


def test_basic_filter_from_keywords() -> None:
    assert basic_filter("departamento en renta", "Zapopan") == {
        "propertyType": "Departamentos",
        "location.city": {"$regex": "Zapopan", "$options": "i"},
        "operationType": "Renta",
    }
    assert basic_filter("quiero comprar una casa") == {"propertyType": "Casas", "operationType": "Venta"}
    assert basic_filter("algo bonito") == {"status": "available"}


@pytest.mark.asyncio
async def test_filtering_applies_only_without_proximity_words(make_llm) -> None:
    cap = FilteringCapability(llm=make_llm())

    assert await cap.applies(_inp("casas en venta en Zapopan")) is True
    assert await cap.applies(_inp("casas cerca de un parque")) is False


@pytest.mark.asyncio
async def test_filtering_uses_model_filter(make_llm) -> None:
    llm = make_llm(
        structured={
            "FilterJudgment": {
                "message": "Encontré opciones",
                "filter": {"propertyType": "Casas", "bedrooms": {"$gte": 3}},
                "sort": {"price": 1},
            }
        }
    )

    out = await FilteringCapability(llm=llm).run(_inp("casas con 3 recámaras"))

    assert out.response == "Encontré opciones"
    assert out.data["filter"] == {"propertyType": "Casas", "bedrooms": {"$gte": 3}}
    assert out.data["sort"] == {"price": 1}
    assert "projection" not in out.data
    assert "extra_actions" not in out.data


@pytest.mark.asyncio
async def test_filtering_shows_proximity_fragment_before_user_turn(make_llm) -> None:
    llm = make_llm(structured={"FilterJudgment": {"filter": {"propertyType": "Casas"}}})
    fragment = {"location.city": {"$regex": "Zapopan", "$options": "i"}}

    await FilteringCapability(llm=llm).run(_inp("casas cerca de escuelas", proximity_filter=fragment))

    messages, _ = llm.structured_calls[0]
    assert messages[-1].role == ChatRole.user
    assert messages[-2].role == ChatRole.system
    assert "Zapopan" in messages[-2].content


@pytest.mark.asyncio
async def test_filtering_falls_back_to_keywords(make_llm) -> None:
    cap = FilteringCapability(llm=make_llm(fail_structured=True))

    out = await cap.run(_inp("x", query="departamento en renta", location="Zapopan"))

    assert out.data["filter"]["propertyType"] == "Departamentos"
    assert out.data["filter"]["operationType"] == "Renta"
    assert out.response == "Aquí tienes algunas propiedades que podrían interesarte."
    assert set(out.data) == {"filter"}


@pytest.mark.asyncio
async def test_geospatial_asks_for_missing_inputs(make_llm, make_places) -> None:
    places = make_places()
    cap = GeospatialCapability(llm=make_llm(), places=places)

    out = await cap.run(_inp("casas cerca de un parque", amenities=["park"]))

    assert out.missing_inputs == ["location"]
    assert places.calls == []


@pytest.mark.asyncio
async def test_geospatial_looks_up_places_and_tags_filter(make_llm, make_places, make_place) -> None:
    places = make_places({"hospital": [make_place("Hospital", BASE_LAT, BASE_LNG, "hospital")]})
    cap = GeospatialCapability(llm=make_llm(fail_text=True), places=places, radius_meters=3000)

    out = await cap.run(_inp("casas cerca de un hospital", location="Zapopan", amenities=["hospital"]))

    assert places.calls == [(["hospital"], "Zapopan", 3000)]
    assert out.response == "Encontré 1 lugares (hospital) cerca de Zapopan."
    assert out.data["nearby_places"][0]["results"][0]["name"] == "Hospital"
    assert out.data["filter"][PROXIMITY_MARKER_KEY]["logicalOperator"] == "OR"
    assert "filtered_properties" not in out.data


@pytest.mark.asyncio
async def test_geospatial_narrows_candidates_with_and(make_llm, make_places, make_place, make_record) -> None:
    nearby = [
        {"category": "hospital", "results": [make_place("H", BASE_LAT, BASE_LNG, "hospital")]},
        {"category": "park", "results": [make_place("P", BASE_LAT + 0.05, BASE_LNG, "park")]},
    ]
    near_both = make_record("a", BASE_LAT + 0.02, BASE_LNG)
    far = make_record("b", BASE_LAT + 1.0, BASE_LNG)
    places = make_places()
    cap = GeospatialCapability(llm=make_llm(fail_text=True), places=places)

    out = await cap.run(
        _inp(
            "casas cerca de hospital y parque",
            location="Zapopan",
            amenities=["hospital", "park"],
            logical_operator="AND",
            nearby_places=nearby,
            properties=[near_both, far],
        )
    )

    assert places.calls == []
    assert out.data["filtered_properties"] == [near_both]
    assert out.response == "Encontré 1 propiedades cerca de hospital Y park en Zapopan."


@pytest.mark.asyncio
async def test_geospatial_description_comes_from_model(make_llm, make_places) -> None:
    llm = make_llm(text="Hay varios parques cerca.")
    cap = GeospatialCapability(llm=llm, places=make_places())

    out = await cap.run(_inp("casas cerca de parques", location="Zapopan", amenities=["park"]))

    assert out.response == "Hay varios parques cerca."
    assert llm.text_calls[0][-1].content.startswith("Encontré 0 lugares (park) cerca de Zapopan.")


@pytest.mark.asyncio
async def test_property_detail_describes_record(make_llm, make_store) -> None:
    store = make_store([{"_id": "p1", "title": "Casa Azul", "price": 2500000}])
    llm = make_llm(text="La Casa Azul cuesta 2.5 millones.")
    cap = PropertyDetailCapability(llm=llm, store=store)

    assert await cap.applies(_inp("detalles", property_id="p1")) is True
    out = await cap.run(_inp("¿cuánto cuesta?", property_id="p1"))

    assert out.response == "La Casa Azul cuesta 2.5 millones."
    assert out.data == {"property": {"_id": "p1", "title": "Casa Azul", "price": 2500000}}
    assert "Casa Azul" in llm.text_calls[0][0].content


@pytest.mark.asyncio
async def test_property_detail_handles_missing_record_and_model_failure(make_llm, make_store) -> None:
    store = make_store([{"_id": "p1", "title": "Casa Azul"}])
    cap = PropertyDetailCapability(llm=make_llm(fail_text=True), store=store)

    missing = await cap.run(_inp("detalles", property_id="zz"))
    fallback = await cap.run(_inp("detalles", property_id="p1"))

    assert missing.response == "No pude encontrar esa propiedad."
    assert missing.data == {"error": "Property not found"}
    assert fallback.response.startswith("Esta es la información de la propiedad:")
    assert "Casa Azul" in fallback.response


@pytest.mark.asyncio
async def test_response_applies_only_to_finished_answers(make_llm) -> None:
    cap = ResponseCapability(llm=make_llm())

    assert await cap.applies(_inp("q", response="hola", data={})) is True
    assert await cap.applies(_inp("q", response="hola")) is False
    assert await cap.applies(_inp("q", data={})) is False


@pytest.mark.asyncio
async def test_response_apologizes_for_empty_results(make_llm) -> None:
    cap = ResponseCapability(llm=make_llm(fail_text=True))

    out = await cap.run(_inp("casas", response="Aquí tienes", data={"properties": [], "filter": {"a": 1}}))

    assert out.response == NO_RESULTS_FALLBACK
    assert out.data["original_response"] == "Aquí tienes"
    assert out.data["enhancement_reasoning"] == "Generated apologetic response for no properties found"
    assert out.data["filter"] == {"a": 1}


@pytest.mark.asyncio
async def test_response_personalizes_when_results_exist(make_llm) -> None:
    llm = make_llm(text="Encontré 2 casas ideales para ti.")
    cap = ResponseCapability(llm=llm)

    out = await cap.run(_inp("casas", response="Aquí tienes", data={"properties": [{"_id": "a"}, {"_id": "b"}]}))

    assert out.response == "Encontré 2 casas ideales para ti."
    assert out.data["enhancement_reasoning"] == "Generated personalized response based on properties found"
    assert '"properties_count": 2' in llm.text_calls[0][-1].content


def test_has_results() -> None:
    assert has_results({"property": {"_id": "p"}}) is True
    assert has_results({"filtered_properties": [{"_id": "a"}]}) is True
    assert has_results({"properties": []}) is False
    assert has_results({"filter": {}}) is False


@pytest.mark.asyncio
async def test_filtering_without_sort_keeps_earlier_sort_when_merged(make_llm) -> None:
    first = await FilteringCapability(
        llm=make_llm(structured={"FilterJudgment": {"filter": {"propertyType": "Casas"}, "sort": {"price": -1}}})
    ).run(_inp("casas ordenadas por precio"))
    second = await FilteringCapability(
        llm=make_llm(structured={"FilterJudgment": {"filter": {"bedrooms": 2}}})
    ).run(_inp("con 2 recámaras"))

    data = ResultMerger().merge_data([first, second])

    assert data["sort"] == {"price": -1}
    assert data["filter"] == {"$and": [{"propertyType": "Casas"}, {"bedrooms": 2}]}
