from __future__ import annotations

"""Capability execution pipeline.

``ExecutionPipeline`` runs the capabilities a ``Plan`` selected, strictly one
after the other.

Ordering
--------

Plan names are resolved through the ``CapabilityRegistry``; unknown names
are dropped. The filtering capability runs first, then the geospatial
capability, then the rest in plan order, each at most once.

Generic chaining
----------------

Execution is a left fold over the ordered capabilities. The first step gets
the original input; each later step gets the original query, the history
plus a note on the previous output, and ``original parameters ∪ previous
data`` (previous data wins). A step reporting ``missing_inputs`` stops the
fold.

Fast paths
----------

- Filter-then-geo: exactly filtering and geospatial were selected and both
  location and amenities are known. Filtering runs, its filter is executed
  against the record store, and the geospatial step narrows that candidate
  set using lookups made for every amenity category.
- Geo-then-filter: geospatial is needed, no candidate set exists yet. Lookups
  run first, the geospatial step builds the location filter tagged with the
  proximity marker, filtering runs with that fragment, the combined filter is
  executed, and the records are cross-validated against the looked-up points.
  A failure midway returns the best partial output obtained so far.

Failure isolation
-----------------

An exception raised by a capability is logged as a
``CapabilityExecutionError`` and replaced by an apologetic output carrying
``data["error"]``; the pipeline moves on.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..capabilities.base import Capability
from ..errors import CapabilityExecutionError
from ..geo import cross_validate, lookup_nearby, strip_proximity_marker
from ..merger import merge_filters
from ..schemas.domain import CapabilityName, ExecutionInput, ExecutionOutput
from .models import PipelineDeps, PipelineResult
from .notes import append_previous_result

logger = logging.getLogger(__name__)

STEP_APOLOGY = "Lo siento, tuve un problema procesando tu solicitud. Por favor, intenta de nuevo."

NO_CAPABILITY_APOLOGY = "Lo siento, no puedo procesar esta solicitud en este momento."

# Spanish labels used when asking the user for missing inputs.
INPUT_LABELS = {
    "location": "ubicación",
    "amenities": "tipos de servicios cercanos",
    "property_id": "identificador de la propiedad",
    "query": "consulta",
}

FILTERING = CapabilityName.filtering.value
GEOSPATIAL = CapabilityName.geospatial.value


def missing_inputs_message(missing: Sequence[str]) -> str:
    labels = [INPUT_LABELS.get(name, name) for name in missing]
    return f"Claro! Para ayudarte mejor, necesito saber {' y '.join(labels)}."


@dataclass(frozen=True)
class _Fold:
    """Accumulator threaded through generic chaining."""

    outputs: Tuple[ExecutionOutput, ...] = ()
    previous: Optional[ExecutionOutput] = None
    stopped: Optional[ExecutionOutput] = None


class ExecutionPipeline:
    """Order and run the capabilities selected for a turn."""

    def __init__(self, deps: PipelineDeps) -> None:
        """
        Initialize the pipeline.

        Args:
            deps: Registry and collaborators used by the pipeline.
        """
        self._deps = deps

    def order(self, names: Sequence[str]) -> List[Capability]:
        """Resolve plan names into capabilities in canonical order.

        Unknown and duplicate names are dropped.
        """
        resolved: Dict[str, Capability] = {}
        for name in names:
            key = str(getattr(name, "value", name))
            if key in resolved:
                continue
            cap = self._deps.capabilities.lookup(key)
            if cap is None:
                logger.warning(f"Dropping unknown capability from plan: {key}")
                continue
            resolved[key] = cap

        head = [resolved[n] for n in (FILTERING, GEOSPATIAL) if n in resolved]
        rest = [cap for n, cap in resolved.items() if n not in (FILTERING, GEOSPATIAL)]
        return head + rest

    @staticmethod
    def missing_inputs(caps: Sequence[Capability], params: Dict[str, Any]) -> List[str]:
        missing: List[str] = []
        for cap in caps:
            for name in cap.required_inputs:
                value = params.get(name)
                if (value is None or value == "" or value == []) and name not in missing:
                    missing.append(name)
        return missing

    async def run(self, names: Sequence[str], inp: ExecutionInput) -> PipelineResult:
        """Run the capabilities named by a plan against the turn input."""
        caps = self.order(names)
        if not caps:
            logger.warning(f"No registered capability among: {list(names)}")
            return PipelineResult(
                short_circuit=ExecutionOutput(
                    response=NO_CAPABILITY_APOLOGY, data={"error": "No capabilities available"}
                )
            )

        missing = self.missing_inputs(caps, inp.parameters)
        if missing:
            logger.info(f"Missing required inputs: {missing}")
            return PipelineResult(
                short_circuit=ExecutionOutput(
                    response=missing_inputs_message(missing),
                    data={"capabilities": [c.name for c in caps]},
                    missing_inputs=missing,
                )
            )

        by_name = {str(c.name): c for c in caps}
        if self._filter_then_geo_applies(by_name, inp):
            logger.debug("Running filter-then-geo fast path")
            return await self._filter_then_geo(by_name[FILTERING], by_name[GEOSPATIAL], inp)
        if self._geo_then_filter_applies(by_name, inp):
            logger.debug("Running geo-then-filter fast path")
            filtering = self._deps.capabilities.lookup(FILTERING)
            head = await self._geo_then_filter(filtering, by_name[GEOSPATIAL], inp)
            rest = [c for c in caps if c.name not in (FILTERING, GEOSPATIAL)]
            if head.short_circuit is not None or not rest:
                return head
            acc = _Fold(outputs=tuple(head.outputs), previous=head.outputs[-1])
            return await self._chain(rest, inp, acc)

        return await self._chain(caps, inp, _Fold())

    # ------------------------------------------------------------------
    # Generic chaining
    # ------------------------------------------------------------------

    async def _chain(self, caps: Sequence[Capability], inp: ExecutionInput, acc: _Fold) -> PipelineResult:
        for cap in caps:
            acc = await self._step(acc, cap, inp)
            if acc.stopped is not None:
                logger.info(f"Capability {cap.name} requested more input, stopping")
                break
        return PipelineResult(outputs=list(acc.outputs), short_circuit=acc.stopped)

    async def _step(self, acc: _Fold, cap: Capability, inp: ExecutionInput) -> _Fold:
        step_inp = inp if acc.previous is None else self._chained_input(inp, acc.previous)
        out = await self._invoke(cap, step_inp)
        return _Fold(
            outputs=(*acc.outputs, out),
            previous=out,
            stopped=out if out.needs_input else None,
        )

    @staticmethod
    def _chained_input(inp: ExecutionInput, previous: ExecutionOutput, **extra: Any) -> ExecutionInput:
        return ExecutionInput(
            query=inp.query,
            history=append_previous_result(inp.history, previous),
            parameters={**inp.parameters, **(previous.data or {}), **extra},
        )

    async def _invoke(self, cap: Capability, inp: ExecutionInput) -> ExecutionOutput:
        logger.debug(f"Running capability {cap.name}")
        try:
            return await cap.run(inp)
        except Exception as e:
            err = CapabilityExecutionError(str(cap.name), e)
            logger.error(str(err), exc_info=True)
            return ExecutionOutput(response=STEP_APOLOGY, data={"error": str(e), "capability": str(cap.name)})

    async def _fetch(self, expression: Dict[str, Any], sort: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
        store = self._deps.store
        options = {"sort": sort} if sort else None
        result = await store.execute_query(strip_proximity_marker(expression), options)
        return list(result.records)

    # ------------------------------------------------------------------
    # Fast path A: filter, then geo
    # ------------------------------------------------------------------

    def _filter_then_geo_applies(self, by_name: Dict[str, Capability], inp: ExecutionInput) -> bool:
        return (
            set(by_name) == {FILTERING, GEOSPATIAL}
            and bool(inp.param("location"))
            and bool(inp.param("amenities"))
            and self._deps.store is not None
            and self._deps.places is not None
        )

    async def _filter_then_geo(
        self, filtering: Capability, geospatial: Capability, inp: ExecutionInput
    ) -> PipelineResult:
        filter_out = await self._invoke(filtering, inp)
        if filter_out.needs_input:
            return PipelineResult(outputs=[filter_out], short_circuit=filter_out)

        candidates: List[Dict[str, Any]] = []
        expression = filter_out.data.get("filter")
        if expression and not filter_out.failed:
            try:
                candidates = await self._fetch(expression, filter_out.data.get("sort"))
            except Exception as e:
                logger.error(f"Record store query failed, continuing without candidates: {e}")
        logger.debug(f"Filtering produced {len(candidates)} candidates")

        amenities = list(inp.param("amenities"))
        nearby = await lookup_nearby(self._deps.places, amenities, inp.param("location"), self._deps.radius_meters)

        geo_inp = ExecutionInput(
            query=inp.query,
            history=append_previous_result(inp.history, filter_out),
            parameters={
                **inp.parameters,
                "properties": candidates,
                "nearby_places": [batch.model_dump(mode="json") for batch in nearby],
            },
        )
        geo_out = await self._invoke(geospatial, geo_inp)
        if geo_out.needs_input:
            return PipelineResult(outputs=[filter_out, geo_out], short_circuit=geo_out)
        return PipelineResult(outputs=[filter_out, geo_out])

    # ------------------------------------------------------------------
    # Fast path B: geo, then filter
    # ------------------------------------------------------------------

    def _geo_then_filter_applies(self, by_name: Dict[str, Capability], inp: ExecutionInput) -> bool:
        return (
            GEOSPATIAL in by_name
            and self._deps.capabilities.has(FILTERING)
            and bool(inp.param("location"))
            and bool(inp.param("amenities"))
            and "properties" not in inp.parameters
            and self._deps.store is not None
            and self._deps.places is not None
        )

    async def _geo_then_filter(
        self, filtering: Capability, geospatial: Capability, inp: ExecutionInput
    ) -> PipelineResult:
        amenities = list(inp.param("amenities"))
        nearby = await lookup_nearby(self._deps.places, amenities, inp.param("location"), self._deps.radius_meters)
        nearby_dump = [batch.model_dump(mode="json") for batch in nearby]

        geo_inp = ExecutionInput(
            query=inp.query,
            history=list(inp.history),
            parameters={**inp.parameters, "nearby_places": nearby_dump},
        )
        geo_out = await self._invoke(geospatial, geo_inp)
        if geo_out.needs_input:
            return PipelineResult(outputs=[geo_out], short_circuit=geo_out)
        if geo_out.failed:
            logger.warning("Geospatial step failed, returning its output")
            return PipelineResult(outputs=[geo_out])

        geo_filter = geo_out.data.get("filter") or {}
        filter_out = await self._invoke(
            filtering,
            self._chained_input(inp, geo_out, proximity_filter=geo_filter),
        )
        if filter_out.needs_input:
            return PipelineResult(outputs=[geo_out, filter_out], short_circuit=filter_out)
        if filter_out.failed or not filter_out.data.get("filter"):
            logger.warning("Filtering failed after geospatial lookup, returning the geospatial output")
            return PipelineResult(outputs=[geo_out])

        combined = merge_filters([filter_out.data.get("filter"), geo_filter])
        try:
            records = await self._fetch(combined, filter_out.data.get("sort"))
        except Exception as e:
            logger.error(f"Record store query failed, returning the filtering output: {e}")
            return PipelineResult(outputs=[filter_out])

        operator = inp.param("logical_operator", geo_out.data.get("logical_operator"))
        validated = cross_validate(records, nearby, operator)
        logger.info(f"Cross-validation kept {len(validated)} of {len(records)} records")

        data = {
            **filter_out.data,
            **geo_out.data,
            "filter": combined,
            "properties": validated,
            "original_properties": records,
            "validated_count": len(validated),
            "total_count": len(records),
        }
        return PipelineResult(outputs=[ExecutionOutput(response=filter_out.response, data=data)])
