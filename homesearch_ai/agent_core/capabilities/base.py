from __future__ import annotations

"""Capability protocol and shared helpers.

A capability is a self-contained handler for one category of intent
(structural filtering, geospatial proximity, single-record detail,
final-response polish).

The execution pipeline resolves plan entries through a
``CapabilityRegistry`` and invokes ``run`` with a fresh ``ExecutionInput``.

Capabilities should:

- never mutate the input they receive,
- return structured facts in ``ExecutionOutput.data``,
- set ``missing_inputs`` only when they cannot proceed without the user,
- recover from ``CollaboratorError`` with deterministic defaults.
"""

from typing import List, Protocol, Sequence

from ..schemas.domain import ChatMessage, ChatRole, ExecutionInput, ExecutionOutput


class Capability(Protocol):
    """Protocol for capability implementations."""

    name: str
    description: str
    required_inputs: Sequence[str]

    async def applies(self, inp: ExecutionInput) -> bool: ...

    async def run(self, inp: ExecutionInput) -> ExecutionOutput: ...


def system(content: str) -> ChatMessage:
    return ChatMessage(role=ChatRole.system, content=content)


def user(content: str) -> ChatMessage:
    return ChatMessage(role=ChatRole.user, content=content)


def conversation(system_prompt: str, inp: ExecutionInput) -> List[ChatMessage]:
    """System prompt, then the input's history, then the query as a user turn."""
    return [system(system_prompt), *inp.history, user(inp.query)]
