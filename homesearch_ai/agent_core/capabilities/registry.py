from __future__ import annotations

"""Capability registry.

The registry maps a capability name to an executable capability
implementation. Capabilities are registered once at process start and are
never removed.

The execution pipeline uses this registry to resolve plan entries into
concrete implementations; names the registry does not know are dropped.
"""

import logging
from typing import Any, Dict, List, Optional

from .base import Capability

logger = logging.getLogger(__name__)


def _key(name: Any) -> str:
    return str(getattr(name, "value", name))


class CapabilityRegistry:
    """
    Append-only mapping of capability names to implementations.

    Notes:
        - ``register`` rejects a second capability with an existing name.
        - ``lookup`` returns ``None`` for unknown names.
    """

    def __init__(self) -> None:
        """Initialize an empty capability registry."""
        self._caps: Dict[str, Capability] = {}

    def register(self, cap: Capability) -> None:
        """
        Register a capability implementation.

        Args:
            cap: The capability instance to register. It must expose a ``name`` attribute.

        Raises:
            ValueError: If a capability with the same name is already registered.
        """
        name = _key(cap.name)
        if name in self._caps:
            raise ValueError(f"capability already registered: {name}")
        self._caps[name] = cap
        logger.info(f"Registered capability: {name}")

    def lookup(self, name: str) -> Optional[Capability]:
        """
        Retrieve a registered capability by name.

        Args:
            name: The capability name.

        Returns:
            The capability implementation, or None if it is not registered.
        """
        return self._caps.get(_key(name))

    def has(self, name: str) -> bool:
        """Check if a capability is registered."""
        return _key(name) in self._caps

    def names(self) -> List[str]:
        """Registered capability names in registration order."""
        return list(self._caps)
