"""Pydantic base classes for the search orchestrator's models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """
    Base model for outputs and contexts that are built up step by step.

    - ``populate_by_name=True``: collaborators may send camelCase aliases.
    - ``extra="forbid"``: a misspelled field is a validation error, not silent data.

    Subclasses describing third-party payloads (places, query results) relax
    ``extra`` to ``"ignore"``.
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class FrozenSchema(BaseSchema):
    """Base model for values handed between stages (messages, inputs, plans, points).

    Instances are immutable; a stage that needs a variation builds a new one.
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)
