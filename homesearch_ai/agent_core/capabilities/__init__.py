"""Capability protocol and registry.

 A *capability* handles one category of intent: structural filtering,
 geospatial proximity, single-property detail or final-response polish.

 - The decision engine names capabilities in a ``Plan``.
 - The execution pipeline resolves those names through ``CapabilityRegistry``
   and runs each with a fresh ``ExecutionInput``.

 Built-in implementations live in ``capabilities.builtin``.

 This package exports:

 - ``Capability``: protocol with ``applies`` and ``run``.
 - ``CapabilityRegistry``: name → capability implementation mapping.
 """

from .base import Capability
from .registry import CapabilityRegistry

__all__ = [
    "Capability",
    "CapabilityRegistry",
]
