from __future__ import annotations

"""Structural validation of extracted parameters.

The validation stage runs after planning and before any capability. Which
fields are invalid is always decided locally; only the wording of the
clarification may be delegated to the language model.

Checks
------

- ``location`` must be a single value, not a list.
- ``amenities``, when present, must be a non-empty list of recognized place
  categories.
- ``logical_operator``, when present, must be ``AND`` or ``OR``.
- ``query``, when it is the only search signal, must exceed a minimum length.
"""

import json
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..core.config import settings
from .clients.interfaces import LanguageModelClient
from .errors import CollaboratorError, ValidationError
from .schemas.domain import ChatMessage, ChatRole, ExecutionOutput, LogicalOperator

logger = logging.getLogger(__name__)

CLARIFICATION_SYSTEM_PROMPT = (
    "Eres un asistente inmobiliario. El usuario hizo una búsqueda con datos ambiguos o inválidos. "
    "Escribe un mensaje breve, amable y en español pidiéndole que aclare únicamente los campos indicados. "
    "No inventes propiedades ni resultados."
)

GENERIC_CLARIFICATION = "Por favor, proporciona más detalles para que pueda ayudarte mejor a encontrar lo que buscas."

# Keys that count as search signals besides the free-text query.
STRUCTURED_SIGNALS = ("location", "amenities", "property_id")


def _present(value: Any) -> bool:
    return value is not None and value != ""


class ValidationStage:
    """Validate a plan's parameter bag and produce clarifications.

    Attributes:
        recognized_amenities: Place categories accepted in ``amenities``.
        min_query_length: Length the stripped query must exceed when it is the
            sole search signal.
    """

    def __init__(
        self,
        llm: Optional[LanguageModelClient] = None,
        *,
        recognized_amenities: Optional[Iterable[str]] = None,
        min_query_length: Optional[int] = None,
    ) -> None:
        search = settings.search
        self._llm = llm
        amenities = recognized_amenities if recognized_amenities is not None else search.recognized_amenities
        self.recognized_amenities = {a.strip().lower() for a in amenities}
        self.min_query_length = min_query_length if min_query_length is not None else search.min_query_length

    def check(self, params: Mapping[str, Any]) -> List[Dict[str, Any]]:
        """Return one issue per invalid field; an empty list means valid."""
        issues: List[Dict[str, Any]] = []

        location = params.get("location")
        if isinstance(location, (list, tuple)):
            issues.append(
                {"field": "location", "reason": "Location should be a single value, not a list", "value": location}
            )

        amenities = params.get("amenities")
        if amenities is not None:
            if not isinstance(amenities, (list, tuple)):
                issues.append({"field": "amenities", "reason": "Amenities should be a list", "value": amenities})
            elif len(amenities) == 0:
                issues.append({"field": "amenities", "reason": "Amenities list is empty", "value": amenities})
            else:
                unknown = [a for a in amenities if not isinstance(a, str) or a.strip().lower() not in self.recognized_amenities]
                if unknown:
                    issues.append(
                        {"field": "amenities", "reason": f"Unrecognized amenity categories: {unknown}", "value": amenities}
                    )

        operator = params.get("logical_operator")
        if operator is not None and operator not in (LogicalOperator.AND.value, LogicalOperator.OR.value):
            issues.append(
                {"field": "logical_operator", "reason": "Logical operator should be AND or OR", "value": operator}
            )

        query = params.get("query")
        sole_signal = not any(_present(params.get(k)) for k in STRUCTURED_SIGNALS)
        if sole_signal and isinstance(query, str) and len(query.strip()) <= self.min_query_length:
            issues.append({"field": "query", "reason": "Query is too vague", "value": query})

        return issues

    def enforce(self, params: Mapping[str, Any]) -> None:
        """Raise ``ValidationError`` when any field is invalid."""
        issues = self.check(params)
        if issues:
            logger.info(f"Validation failed for fields: {[i['field'] for i in issues]}")
            raise ValidationError(issues)

    async def clarify(self, query: str, error: ValidationError) -> ExecutionOutput:
        """Build the clarification returned to the user for a rejected turn."""
        text = await self._clarification_text(query, error.issues)
        return ExecutionOutput(
            response=text,
            data={"validation_issues": error.issues},
            missing_inputs=error.fields,
        )

    async def _clarification_text(self, query: str, issues: List[Dict[str, Any]]) -> str:
        if self._llm is not None:
            messages = [
                ChatMessage(role=ChatRole.system, content=CLARIFICATION_SYSTEM_PROMPT),
                ChatMessage(
                    role=ChatRole.user,
                    content=(
                        f'Consulta original: "{query}"\n\n'
                        f"Errores de validación: {json.dumps(issues, ensure_ascii=False, default=str)}"
                    ),
                ),
            ]
            try:
                text = await self._llm.chat_text(messages)
                if text and text.strip():
                    return text.strip()
            except CollaboratorError as e:
                logger.warning(f"Could not generate clarification, using fallback: {e}")
        return fallback_clarification(issues)


def fallback_clarification(issues: List[Dict[str, Any]]) -> str:
    for issue in issues:
        value = issue.get("value")
        if issue.get("field") == "location" and isinstance(value, (list, tuple)):
            places = " y ".join(str(v) for v in value)
            return (
                f"Veo que estás interesado en propiedades en {places}. Para poder ofrecerte los mejores "
                "resultados, ¿podrías indicarme en cuál de estas ubicaciones prefieres buscar primero?"
            )
    return GENERIC_CLARIFICATION
