"""Pydantic AI language model adapter.

This module provides ``PydanticAILanguageModel``, the default
``LanguageModelClient`` implementation. Each call builds a short-lived
pydantic-ai ``Agent``:

- system messages are joined into the agent's system prompt,
- the remaining messages are rendered as a role-tagged transcript,
- ``output_type`` selects free text (``str``) or a structured pydantic model.

Provider failures surface as ``CollaboratorError`` so callers can fall back to
their deterministic defaults.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar

from pydantic_ai import Agent

from ..errors import CollaboratorError
from ..schemas.domain import ChatMessage, ChatRole

logger = logging.getLogger(__name__)

T = TypeVar("T")


def render_messages(messages: Sequence[ChatMessage]) -> tuple[str, str]:
    """Split chat messages into a system prompt and a user prompt.

    Returns:
        ``(system_prompt, user_prompt)``. When the conversation is a single
        user message its content is used verbatim as the prompt.
    """
    system_parts: List[str] = []
    turns: List[ChatMessage] = []
    for message in messages:
        if message.role == ChatRole.system:
            system_parts.append(message.content)
        else:
            turns.append(message)

    if len(turns) == 1 and turns[0].role == ChatRole.user:
        prompt = turns[0].content
    else:
        prompt = "\n\n".join(f"{m.role.value}: {m.content}" for m in turns)
    return "\n\n".join(system_parts), prompt


class PydanticAILanguageModel:
    """``LanguageModelClient`` backed by a pydantic-ai model.

    Attributes:
        model: A pydantic-ai model instance or model identifier string
            (e.g. ``"openai:gpt-4o-mini"``).
        temperature: Optional sampling temperature applied to every call.
    """

    def __init__(self, model: Any, *, temperature: Optional[float] = None) -> None:
        self._model = model
        self._temperature = temperature

    def _agent(self, output_type: Any, system_prompt: str) -> Agent:
        kwargs: Dict[str, Any] = {"output_type": output_type}
        if system_prompt:
            kwargs["system_prompt"] = system_prompt
        if self._temperature is not None:
            kwargs["model_settings"] = {"temperature": self._temperature}
        return Agent(self._model, **kwargs)

    async def _run(self, messages: Sequence[ChatMessage], output_type: Any) -> Any:
        system_prompt, prompt = render_messages(messages)
        agent = self._agent(output_type, system_prompt)
        try:
            result = await agent.run(prompt)
        except Exception as e:
            logger.error(f"Language model call failed: {e}")
            raise CollaboratorError("language_model", str(e), cause=e) from e
        return result.output

    async def chat_text(self, messages: Sequence[ChatMessage]) -> str:
        output = await self._run(messages, str)
        return str(output)

    async def chat_structured(self, messages: Sequence[ChatMessage], output_type: Type[T]) -> T:
        return await self._run(messages, output_type)
