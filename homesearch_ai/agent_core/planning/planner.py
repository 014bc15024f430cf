from __future__ import annotations

"""Decision engine for search turns.

This module defines the planner used by ``SearchOrchestrator``.

Responsibilities
----------------

- Convert a turn (``query``, ``history``, prior ``SearchContext``) into a
  ``Plan``: which capabilities to run and with which parameters.
- Delegate the reasoning to the language model collaborator, which returns a
  structured ``PlanJudgment``.
- Apply the deterministic continuation merge when the model flags the turn as
  a refinement of the previous search.

The decision engine is intentionally constrained:

- It does not run capabilities.
- It does not validate parameters; that is the validation stage's job.
- It never guesses a plan when the model output is missing or malformed; it
  raises ``PlanningError`` instead.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from ..capabilities.registry import CapabilityRegistry
from ..clients.interfaces import LanguageModelClient
from ..errors import CollaboratorError, PlanningError
from ..schemas.domain import ChatMessage, ChatRole, LogicalOperator, Plan, SearchContext
from .merge import merge_continuation, normalize_operator

logger = logging.getLogger(__name__)

PLANNER_SYSTEM_PROMPT = (
    "You are the router of a real-estate search assistant. Decide which capabilities must run "
    "to answer the user's latest message and extract the search parameters.\n\n"
    "Return:\n"
    "- capabilities: capability names to run, from the list below.\n"
    "- extracted_parameters: any of query (the user's property requirements as free text), "
    "location (a single city, neighbourhood or place name), amenities (a list of place "
    "categories such as hospital, school or park), logical_operator (AND when every amenity "
    "must be nearby, OR when any is enough) and property_id.\n"
    "- reasoning: one short sentence explaining the choice.\n"
    "- continuation: true when the message refines the previous search instead of starting "
    "a new one.\n"
)

# The model sometimes answers with camelCase keys.
PARAMETER_ALIASES = {
    "logicalOperator": "logical_operator",
    "operator": "logical_operator",
    "propertyId": "property_id",
    "amenity": "amenities",
}


class PlanJudgment(BaseModel):
    """Structured output requested from the language model."""

    capabilities: List[str] = Field(default_factory=list)
    extracted_parameters: Dict[str, Any] = Field(default_factory=dict)
    reasoning: str = ""
    continuation: bool = False


def normalize_parameters(params: Dict[str, Any]) -> Dict[str, Any]:
    """Canonicalize parameter keys and drop empty values."""
    out: Dict[str, Any] = {}
    for key, value in params.items():
        if value is None or value == "":
            continue
        out[PARAMETER_ALIASES.get(key, key)] = value
    if "logical_operator" in out:
        out["logical_operator"] = normalize_operator(out["logical_operator"])
    return out


def _capability_names(raw: Sequence[Any]) -> List[str]:
    names: List[str] = []
    for item in raw:
        name = str(getattr(item, "value", item)).strip().lower()
        if name and name not in names:
            names.append(name)
    return names


class DecisionEngine:
    """Turn a conversational request into a ``Plan``.

    The registry, when given, only feeds capability descriptions into the
    prompt; unknown capability names are left in the plan and dropped later by
    the execution pipeline.
    """

    def __init__(self, llm: LanguageModelClient, *, registry: Optional[CapabilityRegistry] = None) -> None:
        self._llm = llm
        self._registry = registry

    def _system_prompt(self) -> str:
        if self._registry is None:
            return PLANNER_SYSTEM_PROMPT
        lines = []
        for name in self._registry.names():
            cap = self._registry.lookup(name)
            lines.append(f"- {name}: {getattr(cap, 'description', '')}")
        return PLANNER_SYSTEM_PROMPT + "\nAvailable capabilities:\n" + "\n".join(lines)

    def _messages(
        self, query: str, history: Sequence[ChatMessage], prior: Optional[SearchContext]
    ) -> List[ChatMessage]:
        messages = [ChatMessage(role=ChatRole.system, content=self._system_prompt()), *history]
        if prior is not None:
            snapshot = prior.model_dump(mode="json", exclude={"last_updated"}, exclude_none=True)
            messages.append(
                ChatMessage(role=ChatRole.system, content=f"Previous search context: {json.dumps(snapshot)}")
            )
        messages.append(ChatMessage(role=ChatRole.user, content=query))
        return messages

    async def _judge(self, messages: List[ChatMessage]) -> PlanJudgment:
        try:
            raw = await self._llm.chat_structured(messages, PlanJudgment)
        except CollaboratorError as e:
            raise PlanningError(f"language model unavailable: {e}") from e
        if raw is None:
            raise PlanningError("language model returned no plan")
        try:
            if isinstance(raw, PlanJudgment):
                return raw
            if isinstance(raw, BaseModel):
                return PlanJudgment.model_validate(raw.model_dump())
            return PlanJudgment.model_validate(raw)
        except PydanticValidationError as e:
            raise PlanningError(f"malformed plan: {e}") from e

    async def plan(
        self,
        *,
        query: str,
        history: Sequence[ChatMessage] = (),
        prior: Optional[SearchContext] = None,
    ) -> Plan:
        """Produce the plan for one turn.

        Raises:
            PlanningError: When the model call fails or returns a malformed plan.
        """
        judgment = await self._judge(self._messages(query, history, prior))

        params = normalize_parameters(dict(judgment.extracted_parameters))
        params.setdefault("query", query)

        if judgment.continuation and prior is not None:
            logger.debug("Continuation detected, merging with previous search context")
            params = merge_continuation(prior, params)

        if params.get("amenities") and "logical_operator" not in params:
            params["logical_operator"] = LogicalOperator.OR.value

        plan = Plan(
            capabilities=_capability_names(judgment.capabilities),
            parameters=params,
            reasoning=judgment.reasoning,
            continuation=judgment.continuation,
        )
        logger.info(f"Plan: capabilities={plan.capabilities} continuation={plan.continuation}")
        logger.debug(f"Plan parameters: {plan.parameters}")
        return plan
