from __future__ import annotations

"""Parameter and context merging.

Two layers live here:

- A generic recursive merge over a small tagged-value model. Every value is a
  ``scalar``, a ``list``, a ``map`` or ``missing`` (``None``). Precedence:

  ===========  ===========  ==========================================
  base         update       result
  ===========  ===========  ==========================================
  any          missing      base
  missing      any          update
  map          map          key-wise recursive merge
  list         list         ``ListPolicy.replace``: update;
                            ``ListPolicy.union``: ordered de-duplicated union
  any          any          update
  ===========  ===========  ==========================================

- The continuation merge applied by the decision engine, which combines a
  prior ``SearchContext`` with the parameters extracted from a new turn.

Both are idempotent: merging the same update twice equals merging it once.
"""

from enum import Enum
from typing import Any, Dict, List, Literal, Mapping, Optional

from ..schemas.domain import LogicalOperator, SearchContext

ValueKind = Literal["missing", "scalar", "list", "map"]


class ListPolicy(str, Enum):
    replace = "replace"
    union = "union"


def kind_of(value: Any) -> ValueKind:
    if value is None:
        return "missing"
    if isinstance(value, Mapping):
        return "map"
    if isinstance(value, (list, tuple)):
        return "list"
    return "scalar"


def _union(base: List[Any], update: List[Any]) -> List[Any]:
    out: List[Any] = []
    for item in [*base, *update]:
        if item not in out:
            out.append(item)
    return out


def deep_merge(base: Any, update: Any, *, lists: ListPolicy = ListPolicy.replace) -> Any:
    """Merge ``update`` over ``base`` following the tagged-value precedence rules."""
    base_kind, update_kind = kind_of(base), kind_of(update)
    if update_kind == "missing":
        return base
    if base_kind == "missing":
        return update
    if base_kind == "map" and update_kind == "map":
        merged: Dict[str, Any] = dict(base)
        for key, value in update.items():
            merged[key] = deep_merge(base.get(key), value, lists=lists)
        return merged
    if base_kind == "list" and update_kind == "list" and lists == ListPolicy.union:
        return _union(list(base), list(update))
    return update


# Marker phrases meaning the user is starting a new search. The new query
# replaces the old one when one of these appears.
FRESH_START_MARKERS = (
    "quiero",
    "busco",
    "necesito",
    "nueva búsqueda",
    "nueva busqueda",
    "empezar de nuevo",
    "olvida lo anterior",
)

# Leading phrases that always extend the previous query, even when a fresh
# start marker appears later in the text.
CONTINUATION_PREFIXES = (
    "que tenga",
    "que sea",
    "que esté",
    "que este",
    "y también",
    "y tambien",
    "también",
    "tambien",
    "con ",
    "that has",
    "with",
    "and also",
    "also",
    "that is",
    "that are",
    "that",
)


def combine_queries(previous: Optional[str], new: Optional[str]) -> Optional[str]:
    """Combine the prior free-text query with the new turn's query.

    The new text replaces the old one when it contains a fresh-start marker,
    unless it opens with a continuation phrase. Text the prior query already
    ends with, as whole words, is not appended again.
    """
    prev = (previous or "").strip()
    cur = (new or "").strip()
    if not cur:
        return prev or None
    if not prev:
        return cur

    lowered = cur.lower()
    extends = any(lowered.startswith(p) for p in CONTINUATION_PREFIXES)
    if not extends and any(marker in lowered for marker in FRESH_START_MARKERS):
        return cur
    previous_lower = prev.lower()
    if previous_lower == lowered or previous_lower.endswith(f" {lowered}"):
        return prev
    return f"{prev} {cur}"


def normalize_operator(value: Any) -> Any:
    if isinstance(value, LogicalOperator):
        return value.value
    if isinstance(value, str) and value.strip().upper() in (LogicalOperator.AND.value, LogicalOperator.OR.value):
        return value.strip().upper()
    return value


def merge_continuation(prior: SearchContext, extracted: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge a continuation turn's parameters with the prior search context.

    - ``query``: concatenated unless the new text starts a fresh search.
    - ``location``: the new value wins only when present.
    - ``amenities``: de-duplicated union of prior and new.
    - ``logical_operator``: the new value wins only when present.

    Other keys in ``extracted`` pass through unchanged.
    """
    merged: Dict[str, Any] = dict(extracted)

    query = combine_queries(prior.query, extracted.get("query"))
    if query is not None:
        merged["query"] = query

    # locations are atomic; a new mapping never inherits keys of the old one
    location = extracted.get("location") if extracted.get("location") is not None else prior.location
    if location is not None:
        merged["location"] = location

    amenities = deep_merge(prior.amenities, extracted.get("amenities"), lists=ListPolicy.union)
    if amenities is not None:
        merged["amenities"] = amenities

    operator = deep_merge(prior.logical_operator, extracted.get("logical_operator"))
    if operator is not None:
        merged["logical_operator"] = normalize_operator(operator)

    return merged


def apply_context_update(current: Optional[SearchContext], update: Mapping[str, Any]) -> SearchContext:
    """Monotonic update of a stored ``SearchContext``.

    Known fields are retained unless ``update`` supplies a replacement;
    ``None`` values never erase anything.
    """
    base = current.model_dump(exclude={"last_updated"}) if current is not None else {}
    fields = set(SearchContext.model_fields) - {"last_updated"}
    known = {k: v for k, v in update.items() if k in fields}
    merged = deep_merge(base, known)
    # filters and locations are replaced wholesale, not merged key by key
    if known.get("last_filter") is not None:
        merged["last_filter"] = dict(known["last_filter"])
    if known.get("location") is not None:
        merged["location"] = known["location"]
    return SearchContext.model_validate(merged)
