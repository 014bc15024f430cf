"""Planning components.

 The planning subsystem turns a conversational turn into a ``Plan``: the
 ordered capability names to run and the parameter bag they receive.

 - ``DecisionEngine`` asks the language model for a structured judgment and
   applies the continuation merge against the prior ``SearchContext``.
 - ``merge`` holds the generic tagged-value merge plus the continuation and
   context-update rules built on top of it.

 The planner itself does not execute capabilities; plans are consumed by
 ``homesearch_ai.agent_core.runtime.ExecutionPipeline``.
 """

from .merge import ListPolicy, apply_context_update, combine_queries, deep_merge, merge_continuation
from .planner import DecisionEngine, PlanJudgment

__all__ = [
    "DecisionEngine",
    "ListPolicy",
    "PlanJudgment",
    "apply_context_update",
    "combine_queries",
    "deep_merge",
    "merge_continuation",
]
