from __future__ import annotations

"""Error taxonomy for the search orchestrator.

Each error class maps to one recovery strategy:

- ``ValidationError``: extracted parameters are ambiguous or invalid. The
  orchestrator answers with a clarification and never runs the pipeline.
- ``CapabilityExecutionError``: a capability raised. The pipeline substitutes
  a local apology for that step and continues.
- ``CollaboratorError``: the language model, record store or places service
  failed. Callers fall back to deterministic defaults.
- ``PlanningError``: the decision engine could not produce a plan. The turn
  aborts with a generic apology.
"""

from typing import Any, Dict, List, Optional


class OrchestrationError(Exception):
    """Base class for orchestrator errors."""


class ValidationError(OrchestrationError):
    def __init__(self, issues: List[Dict[str, Any]]) -> None:
        self.issues = list(issues)
        fields = ", ".join(str(i.get("field")) for i in self.issues)
        super().__init__(f"invalid parameters: {fields}")

    @property
    def fields(self) -> List[str]:
        out: List[str] = []
        for issue in self.issues:
            field = str(issue.get("field"))
            if field not in out:
                out.append(field)
        return out


class CapabilityExecutionError(OrchestrationError):
    def __init__(self, capability: str, cause: BaseException) -> None:
        self.capability = capability
        self.cause = cause
        super().__init__(f"{capability} failed: {cause}")


class CollaboratorError(OrchestrationError):
    def __init__(self, collaborator: str, message: str, *, cause: Optional[BaseException] = None) -> None:
        self.collaborator = collaborator
        self.cause = cause
        super().__init__(f"{collaborator}: {message}")


class PlanningError(OrchestrationError):
    """The decision engine output was missing or malformed."""
