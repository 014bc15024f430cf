from __future__ import annotations

"""Merge the outputs of every executed capability into one answer.

Filters
-------

Non-empty filters are collected in execution order. None yields ``{}``, one
is passed through unchanged, several are grouped under ``{"$and": [...]}``.

Data bag
--------

Every other key is merged left to right; a later capability wins a
collision.

Text
----

Texts matching a known generic-failure phrase are discarded. Several valid
texts are synthesized into one reply by the language model (falling back to
the first valid text); a single valid text is used verbatim; no valid text
yields a fixed apology.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from .clients.interfaces import LanguageModelClient
from .errors import CollaboratorError
from .schemas.domain import ChatMessage, ChatRole, ExecutionOutput

logger = logging.getLogger(__name__)

FILTER_KEY = "filter"

GENERIC_APOLOGY = "Lo siento, no puedo procesar esta solicitud en este momento."

GENERIC_FAILURE_PHRASES = (
    "Lo siento, no puedo procesar",
    "ocurrió un error",
    "tuve un problema procesando",
)

SYNTHESIS_SYSTEM_PROMPT = (
    "Eres un asistente inmobiliario. Combina las siguientes respuestas parciales en una sola respuesta "
    "coherente y breve, en español, sin repetir información ni contradecir las cifras."
)


def merge_filters(filters: Sequence[Optional[Dict[str, Any]]]) -> Dict[str, Any]:
    fragments = [f for f in filters if f]
    if not fragments:
        return {}
    if len(fragments) == 1:
        return fragments[0]
    return {"$and": list(fragments)}


def is_generic_failure(text: str) -> bool:
    lowered = (text or "").lower()
    return any(phrase.lower() in lowered for phrase in GENERIC_FAILURE_PHRASES)


class ResultMerger:
    """Combine capability outputs; the language model is only used for text synthesis."""

    def __init__(self, llm: Optional[LanguageModelClient] = None) -> None:
        self._llm = llm

    def merge_data(self, outputs: Sequence[ExecutionOutput]) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        filters: List[Optional[Dict[str, Any]]] = []
        for output in outputs:
            for key, value in (output.data or {}).items():
                if key == FILTER_KEY:
                    filters.append(value)
                else:
                    data[key] = value
        combined = merge_filters(filters)
        if combined:
            data[FILTER_KEY] = combined
        return data

    async def merge_text(self, query: str, outputs: Sequence[ExecutionOutput]) -> str:
        texts = [o.response for o in outputs if o.response and o.response.strip() and not is_generic_failure(o.response)]
        if not texts:
            return GENERIC_APOLOGY
        if len(texts) == 1:
            return texts[0]
        return await self._synthesize(query, texts)

    async def _synthesize(self, query: str, texts: List[str]) -> str:
        if self._llm is None:
            return texts[0]
        parts = "\n\n".join(f"Respuesta {i}: {t}" for i, t in enumerate(texts, start=1))
        messages = [
            ChatMessage(role=ChatRole.system, content=SYNTHESIS_SYSTEM_PROMPT),
            ChatMessage(role=ChatRole.user, content=f'Consulta del usuario: "{query}"\n\n{parts}'),
        ]
        try:
            text = await self._llm.chat_text(messages)
        except CollaboratorError as e:
            logger.warning(f"Response synthesis failed, using the first valid text: {e}")
            return texts[0]
        return text.strip() or texts[0]

    async def merge(self, query: str, outputs: Sequence[ExecutionOutput]) -> ExecutionOutput:
        return ExecutionOutput(response=await self.merge_text(query, outputs), data=self.merge_data(outputs))
