from __future__ import annotations

"""Runtime dependency bundle, pipeline results and LangGraph state types.

The runtime is designed to be dependency-injected.

- ``PipelineDeps`` collects the registry and collaborators the pipeline needs.
- ``PipelineResult`` is what one pipeline run hands to the result merger.
- ``_TurnState`` is the mutable state passed between the orchestrator's
  LangGraph nodes.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, NotRequired, Optional, Required, TypedDict

from ..capabilities import CapabilityRegistry
from ..clients.interfaces import PlacesClient, RecordStore
from ..geo import DEFAULT_LOOKUP_RADIUS_METERS
from ..schemas.domain import ChatMessage, ExecutionOutput, Plan, SearchContext


@dataclass(frozen=True)
class PipelineDeps:
    """Dependency bundle for ``ExecutionPipeline``.

    Both fast paths need the record store and the places client; without
    them the pipeline always chains generically.
    """

    capabilities: CapabilityRegistry
    store: Optional[RecordStore] = None
    places: Optional[PlacesClient] = None
    radius_meters: int = DEFAULT_LOOKUP_RADIUS_METERS


@dataclass(frozen=True)
class PipelineResult:
    """Outputs of one pipeline run, in execution order.

    ``short_circuit`` is set when the run stopped early (missing inputs, no
    known capability); it is then the answer for the turn and is not merged.
    """

    outputs: List[ExecutionOutput] = field(default_factory=list)
    short_circuit: Optional[ExecutionOutput] = None


class _TurnState(TypedDict):
    """Mutable LangGraph state for a single conversational turn.

    Required keys:

    - ``session_id`` / ``query`` / ``history``: the turn input.
    - ``status``: current ``TurnStatus`` value.

    Optional keys are filled in by the nodes as the turn progresses.
    """

    session_id: Required[str]
    query: Required[str]
    history: Required[List[ChatMessage]]
    status: Required[str]
    prior: NotRequired[Optional[SearchContext]]
    plan: NotRequired[Plan]
    pipeline: NotRequired[PipelineResult]
    output: NotRequired[ExecutionOutput]
    context_update: NotRequired[Dict[str, Any]]
    _finished: NotRequired[bool]
