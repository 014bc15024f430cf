from __future__ import annotations

"""High-level orchestration service for conversational search turns.

``SearchOrchestrator`` exposes the single entry point ``process_query`` and
runs each turn through a LangGraph state machine:

- ``plan``: read the session's ``SearchContext`` and ask the
  ``DecisionEngine`` for a plan. A ``PlanningError`` ends the turn with a
  generic apology.
- ``validate``: run the ``ValidationStage``. A rejected turn ends with a
  clarification; no capability and no collaborator besides the language
  model is called.
- ``execute``: run the ``ExecutionPipeline``. Missing inputs or an empty
  plan end the turn with the pipeline's answer.
- ``merge``: combine the capability outputs with the ``ResultMerger`` and,
  when enabled and records were fetched, polish the answer.
- ``finish``: write the context update (once per turn) and return.

Every turn starts fresh from the persisted context; nothing else is shared
between turns.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from langgraph.graph import END, StateGraph

from .capabilities.base import Capability
from .errors import PlanningError, ValidationError
from .merger import ResultMerger
from .planning.planner import DecisionEngine
from .repos.interfaces import ContextStore
from .runtime import ExecutionPipeline
from .runtime.models import _TurnState
from .runtime.notes import detect_empty_results
from .schemas.domain import CapabilityName, ChatMessage, ExecutionInput, ExecutionOutput, TurnStatus
from .validation import ValidationStage

logger = logging.getLogger(__name__)

PLANNING_APOLOGY = "Lo siento, ocurrió un error al procesar tu solicitud. Por favor, intenta de nuevo."

CONTEXT_PARAMETERS = ("query", "location", "amenities", "logical_operator")


@dataclass(frozen=True)
class SearchOrchestratorDeps:
    """Dependency bundle for ``SearchOrchestrator``.

    ``polisher`` is the response capability applied to merged answers when
    ``polish_response`` is enabled.
    """

    planner: DecisionEngine
    validator: ValidationStage
    pipeline: ExecutionPipeline
    merger: ResultMerger
    contexts: ContextStore
    polisher: Optional[Capability] = None
    polish_response: bool = False


class SearchOrchestrator:
    """Answer one conversational turn at a time."""

    def __init__(self, *, deps: SearchOrchestratorDeps) -> None:
        self._deps = deps
        self._graph = self._build_graph()

    def _build_graph(self):
        """Build and compile the LangGraph turn state machine."""
        g: StateGraph = StateGraph(_TurnState)
        g.add_node("plan", self._node_plan)
        g.add_node("validate", self._node_validate)
        g.add_node("execute", self._node_execute)
        g.add_node("merge", self._node_merge)
        g.add_node("finish", self._node_finish)

        g.set_entry_point("plan")
        g.add_conditional_edges("plan", self._route, {"finish": "finish", "continue": "validate"})
        g.add_conditional_edges("validate", self._route, {"finish": "finish", "continue": "execute"})
        g.add_conditional_edges("execute", self._route, {"finish": "finish", "continue": "merge"})
        g.add_edge("merge", "finish")
        g.add_edge("finish", END)
        return g.compile()

    async def process_query(
        self,
        query_text: str,
        session_id: str,
        history: Optional[Iterable[Any]] = None,
    ) -> ExecutionOutput:
        """Process one user message and return the answer with its data bag.

        Args:
            query_text: The user's message.
            session_id: Conversation session identifier used for context.
            history: Prior messages as ``ChatMessage`` or ``{"role", "content"}`` dicts.
        """
        messages: List[ChatMessage] = [
            m if isinstance(m, ChatMessage) else ChatMessage.model_validate(m) for m in (history or [])
        ]
        state: _TurnState = {
            "session_id": session_id,
            "query": query_text,
            "history": messages,
            "status": TurnStatus.received.value,
        }
        logger.info(f"Processing query for session {session_id}")
        final = await self._graph.ainvoke(state)
        return final["output"]

    @staticmethod
    def _route(state: _TurnState) -> str:
        return "finish" if state.get("_finished") else "continue"

    async def _node_plan(self, state: _TurnState) -> _TurnState:
        prior = await self._deps.contexts.get(state["session_id"])
        state["prior"] = prior
        try:
            plan = await self._deps.planner.plan(query=state["query"], history=state["history"], prior=prior)
        except PlanningError as e:
            logger.error(f"Planning failed: {e}")
            state["output"] = ExecutionOutput(response=PLANNING_APOLOGY, data={"error": str(e)})
            state["status"] = TurnStatus.failed.value
            state["_finished"] = True
            return state
        state["plan"] = plan
        state["status"] = TurnStatus.planned.value
        return state

    async def _node_validate(self, state: _TurnState) -> _TurnState:
        plan = state["plan"]
        try:
            self._deps.validator.enforce(plan.parameters)
        except ValidationError as e:
            state["output"] = await self._deps.validator.clarify(state["query"], e)
            state["status"] = TurnStatus.rejected.value
            state["_finished"] = True
            return state
        state["status"] = TurnStatus.validated.value
        return state

    async def _node_execute(self, state: _TurnState) -> _TurnState:
        plan = state["plan"]
        state["status"] = TurnStatus.executing.value
        inp = ExecutionInput(query=state["query"], history=state["history"], parameters=dict(plan.parameters))
        result = await self._deps.pipeline.run(plan.capabilities, inp)
        state["pipeline"] = result
        if result.short_circuit is not None:
            state["output"] = result.short_circuit
            state["_finished"] = True
        return state

    async def _node_merge(self, state: _TurnState) -> _TurnState:
        outputs = state["pipeline"].outputs
        merged = await self._deps.merger.merge(state["query"], outputs)
        state["output"] = await self._polish(state, merged)
        state["status"] = TurnStatus.merged.value
        return state

    async def _polish(self, state: _TurnState, merged: ExecutionOutput) -> ExecutionOutput:
        polisher = self._deps.polisher
        if polisher is None or not self._deps.polish_response:
            return merged
        if CapabilityName.response.value in state["plan"].capabilities:
            return merged
        if not detect_empty_results(merged.data).has_results:
            logger.debug("No records were fetched this turn, skipping response polish")
            return merged
        inp = ExecutionInput(
            query=state["query"],
            history=state["history"],
            parameters={"response": merged.response, "data": merged.data},
        )
        if not await polisher.applies(inp):
            return merged
        try:
            return await polisher.run(inp)
        except Exception as e:
            logger.error(f"Response polish failed, keeping the merged answer: {e}", exc_info=True)
            return merged

    async def _node_finish(self, state: _TurnState) -> _TurnState:
        plan = state.get("plan")
        if plan is not None:
            update = self._context_update(plan.parameters, state["output"], plan.capabilities, plan.continuation)
            state["context_update"] = update
            await self._deps.contexts.put(state["session_id"], update)
        state["status"] = TurnStatus.terminal.value
        return state

    @staticmethod
    def _context_update(
        params: Dict[str, Any], output: ExecutionOutput, capabilities: List[str], continuation: bool
    ) -> Dict[str, Any]:
        # fields rejected by validation are not remembered
        invalid = {str(i.get("field")) for i in (output.data or {}).get("validation_issues", [])}
        update: Dict[str, Any] = {k: params.get(k) for k in CONTEXT_PARAMETERS if k not in invalid}
        update["last_filter"] = (output.data or {}).get("filter") or None
        update["last_capabilities"] = list(capabilities)
        update["continuation"] = continuation
        return update
