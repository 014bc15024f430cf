from __future__ import annotations

import pytest

from homesearch_ai.agent_core.errors import ValidationError
from homesearch_ai.agent_core.validation import GENERIC_CLARIFICATION, ValidationStage


def _stage(llm=None) -> ValidationStage:
    return ValidationStage(llm, recognized_amenities=["hospital", "park", "school"], min_query_length=10)


def _fields(issues) -> list[str]:
    return [i["field"] for i in issues]


def test_valid_parameters_have_no_issues() -> None:
    params = {
        "query": "quiero una casa cerca de un hospital",
        "location": "Tlaquepaque",
        "amenities": ["Hospital"],
        "logical_operator": "OR",
    }
    assert _stage().check(params) == []


def test_location_list_is_rejected() -> None:
    issues = _stage().check({"location": ["Guadalajara", "Zapopan"], "query": "casas bonitas y grandes"})
    assert _fields(issues) == ["location"]


@pytest.mark.parametrize("amenities", ["hospital", [], ["hospital", "castle"], [3]])
def test_invalid_amenities_are_rejected(amenities) -> None:
    issues = _stage().check({"location": "Guadalajara", "amenities": amenities})
    assert _fields(issues) == ["amenities"]


def test_unknown_operator_is_rejected() -> None:
    issues = _stage().check({"location": "Guadalajara", "amenities": ["park"], "logical_operator": "XOR"})
    assert _fields(issues) == ["logical_operator"]


def test_short_query_rejected_only_when_sole_signal() -> None:
    stage = _stage()

    assert _fields(stage.check({"query": " casa "})) == ["query"]
    assert stage.check({"query": "casa", "location": "Zapopan"}) == []
    assert stage.check({"query": "casa", "property_id": "p1"}) == []
    assert stage.check({"query": "casas en renta"}) == []


def test_query_of_exactly_minimum_length_is_rejected() -> None:
    stage = _stage()

    assert _fields(stage.check({"query": "casa verde"})) == ["query"]
    assert stage.check({"query": "casa verdes"}) == []


def test_enforce_raises_with_every_issue() -> None:
    with pytest.raises(ValidationError) as exc:
        _stage().enforce({"location": ["A", "B"], "amenities": [], "logical_operator": "maybe"})

    assert exc.value.fields == ["location", "amenities", "logical_operator"]


@pytest.mark.asyncio
async def test_clarify_uses_language_model_text(make_llm) -> None:
    llm = make_llm(text="¿En cuál ciudad quieres buscar?")
    stage = _stage(llm)
    error = ValidationError([{"field": "location", "reason": "list", "value": ["A", "B"]}])

    out = await stage.clarify("casas en A y B", error)

    assert out.response == "¿En cuál ciudad quieres buscar?"
    assert out.missing_inputs == ["location"]
    assert out.needs_input is True
    assert "casas en A y B" in llm.text_calls[0][-1].content


@pytest.mark.asyncio
async def test_clarify_falls_back_to_location_message(make_llm) -> None:
    stage = _stage(make_llm(fail_text=True))
    error = ValidationError([{"field": "location", "reason": "list", "value": ["Guadalajara", "Zapopan"]}])

    out = await stage.clarify("casas", error)

    assert "Guadalajara y Zapopan" in out.response
    assert out.missing_inputs == ["location"]


@pytest.mark.asyncio
async def test_clarify_falls_back_to_generic_message_without_model() -> None:
    error = ValidationError([{"field": "query", "reason": "vague", "value": "casa"}])

    out = await _stage().clarify("casa", error)

    assert out.response == GENERIC_CLARIFICATION
    assert out.missing_inputs == ["query"]
