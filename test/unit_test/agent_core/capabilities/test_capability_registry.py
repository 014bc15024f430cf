from __future__ import annotations

from dataclasses import dataclass

import pytest

from homesearch_ai.agent_core.capabilities.registry import CapabilityRegistry
from homesearch_ai.agent_core.schemas.domain import CapabilityName


@dataclass(frozen=True)
class _DummyCapability:
    name: str


def test_registry_empty_has_false() -> None:
    reg = CapabilityRegistry()
    assert reg.has(CapabilityName.filtering) is False
    assert reg.names() == []


def test_registry_lookup_missing_returns_none() -> None:
    reg = CapabilityRegistry()
    assert reg.lookup("filtering") is None


def test_registry_register_then_lookup_returns_same_instance() -> None:
    reg = CapabilityRegistry()
    cap = _DummyCapability(name="filtering")
    reg.register(cap)

    assert reg.has("filtering") is True
    assert reg.lookup("filtering") is cap


def test_registry_accepts_enum_members_and_strings_interchangeably() -> None:
    reg = CapabilityRegistry()
    cap = _DummyCapability(name=CapabilityName.geospatial)  # type: ignore[arg-type]
    reg.register(cap)

    assert reg.lookup("geospatial") is cap
    assert reg.lookup(CapabilityName.geospatial) is cap
    assert reg.names() == ["geospatial"]


def test_registry_rejects_duplicate_names() -> None:
    reg = CapabilityRegistry()
    first = _DummyCapability(name="filtering")
    reg.register(first)

    with pytest.raises(ValueError):
        reg.register(_DummyCapability(name="filtering"))
    assert reg.lookup("filtering") is first


def test_registry_names_keep_registration_order() -> None:
    reg = CapabilityRegistry()
    for name in ("response", "filtering", "geospatial"):
        reg.register(_DummyCapability(name=name))

    assert reg.names() == ["response", "filtering", "geospatial"]
