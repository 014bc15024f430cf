from __future__ import annotations

"""Convenience factories for wiring the search orchestrator.

This module contains small helpers to build the default capability registry
and a ready-to-use ``SearchOrchestrator`` from collaborators and settings.

The intent is to keep application wiring and tests concise, while still
allowing deployments to provide their own registry or context store.
"""

from typing import Any, Optional

from ..core.config import Settings, settings as default_settings
from ..core.logging_config import setup_logging
from .capabilities.builtin import (
    FilteringCapability,
    GeospatialCapability,
    PropertyDetailCapability,
    ResponseCapability,
)
from .capabilities.registry import CapabilityRegistry
from .clients.interfaces import LanguageModelClient, PlacesClient, RecordStore
from .clients.pydantic_ai_client import PydanticAILanguageModel
from .merger import ResultMerger
from .planning.planner import DecisionEngine
from .repos.interfaces import ContextStore
from .repos.memory import InMemoryContextStore
from .runtime import ExecutionPipeline, PipelineDeps
from .service import SearchOrchestrator, SearchOrchestratorDeps
from .validation import ValidationStage


def build_default_registry(
    *,
    llm: LanguageModelClient,
    store: RecordStore,
    places: PlacesClient,
    radius_meters: Optional[int] = None,
) -> CapabilityRegistry:
    """Build the default ``CapabilityRegistry``.

    The default registry includes the built-in capabilities: filtering,
    geospatial, property detail and response polish.
    """
    radius = radius_meters if radius_meters is not None else default_settings.search.places_radius_meters
    reg = CapabilityRegistry()
    reg.register(FilteringCapability(llm=llm))
    reg.register(GeospatialCapability(llm=llm, places=places, radius_meters=radius))
    reg.register(PropertyDetailCapability(llm=llm, store=store))
    reg.register(ResponseCapability(llm=llm))
    return reg


def build_language_model(config: Optional[Settings] = None) -> PydanticAILanguageModel:
    """Construct the pydantic-ai backed language model from settings."""
    cfg = (config or default_settings).llm
    return PydanticAILanguageModel(cfg.model, temperature=cfg.temperature)


def build_orchestrator(
    *,
    store: RecordStore,
    places: PlacesClient,
    llm: Optional[LanguageModelClient] = None,
    contexts: Optional[ContextStore] = None,
    registry: Optional[CapabilityRegistry] = None,
    config: Optional[Settings] = None,
    configure_logging: bool = False,
) -> SearchOrchestrator:
    """Construct a ``SearchOrchestrator`` from collaborators and settings.

    Args:
        store: Record-store collaborator.
        places: Places lookup collaborator.
        llm: Language model; defaults to ``PydanticAILanguageModel`` built from settings.
        contexts: Context store; defaults to a new ``InMemoryContextStore``.
        registry: Capability registry; defaults to ``build_default_registry``.
        config: Settings override; defaults to the module-level ``settings``.
        configure_logging: Call ``setup_logging`` with the configured level and format.
    """
    cfg = config or default_settings
    if configure_logging:
        setup_logging(log_level=cfg.log_level, log_format=cfg.log_format)

    search = cfg.search
    model: Any = llm if llm is not None else build_language_model(cfg)
    reg = registry if registry is not None else build_default_registry(
        llm=model, store=store, places=places, radius_meters=search.places_radius_meters
    )

    deps = SearchOrchestratorDeps(
        planner=DecisionEngine(model, registry=reg),
        validator=ValidationStage(
            model,
            recognized_amenities=search.recognized_amenities,
            min_query_length=search.min_query_length,
        ),
        pipeline=ExecutionPipeline(
            PipelineDeps(capabilities=reg, store=store, places=places, radius_meters=search.places_radius_meters)
        ),
        merger=ResultMerger(model),
        contexts=contexts if contexts is not None else InMemoryContextStore(),
        polisher=reg.lookup("response"),
        polish_response=search.polish_response,
    )
    return SearchOrchestrator(deps=deps)
