"""Capability execution runtime.

 The runtime takes the capability names chosen by the decision engine and
 executes them sequentially against a fresh ``ExecutionInput`` per step:

 - generic chaining threads each output into the next step's input,
 - two fast paths handle the filtering/geospatial pair,
 - a failing capability degrades to a local apology instead of aborting.

 The main entry point is ``ExecutionPipeline``; its collaborators are bundled
 in ``PipelineDeps``.
 """

from .engine import ExecutionPipeline
from .models import PipelineDeps, PipelineResult
from .notes import append_previous_result

__all__ = [
    "ExecutionPipeline",
    "PipelineDeps",
    "PipelineResult",
    "append_previous_result",
]
