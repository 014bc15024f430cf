"""Conversational real-estate search orchestration.

This package contains the "engine room" of the search assistant.

Design overview
---------------

A turn flows through four stages:

- ``planning.DecisionEngine`` turns the message, the history and the
  session's prior ``SearchContext`` into a ``Plan`` (capability names plus
  extracted parameters), merging refinements into the previous search.
- ``validation.ValidationStage`` rejects ambiguous parameters with a
  clarification before anything else runs.
- ``runtime.ExecutionPipeline`` runs the selected capabilities sequentially,
  with two fast paths for the filtering/geospatial pair.
- ``merger.ResultMerger`` combines filters, data and text into one answer.

Typical usage
-------------

Most applications should build a ``service.SearchOrchestrator`` with
``factory.build_orchestrator`` and call ``process_query`` once per message.
"""

from .errors import (
    CapabilityExecutionError,
    CollaboratorError,
    OrchestrationError,
    PlanningError,
    ValidationError,
)
from .schemas.domain import (
    CapabilityName,
    ChatMessage,
    ExecutionInput,
    ExecutionOutput,
    LogicalOperator,
    Plan,
    SearchContext,
)
from .service import SearchOrchestrator, SearchOrchestratorDeps

__all__ = [
    "CapabilityExecutionError",
    "CapabilityName",
    "ChatMessage",
    "CollaboratorError",
    "ExecutionInput",
    "ExecutionOutput",
    "LogicalOperator",
    "OrchestrationError",
    "Plan",
    "PlanningError",
    "SearchContext",
    "SearchOrchestrator",
    "SearchOrchestratorDeps",
    "ValidationError",
]
