"""Read-only views over ordered collections."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from services.ordering import id_of, is_first, is_last, order_of, sorted_by_order


@dataclass(frozen=True)
class ProjectedEntity:
    entity: dict[str, Any]
    is_first: bool
    is_last: bool

    def to_dict(self) -> dict[str, Any]:
        return {**self.entity, "is_first": self.is_first, "is_last": self.is_last}


def _text(item: Any, name: str) -> str:
    value = item.get(name) if isinstance(item, dict) else getattr(item, name, None)
    return str(value) if value is not None else ""


def matches_search(item: Any, search_term: str | None, search_fields: Iterable[str] = ()) -> bool:
    """Case-insensitive substring match on the name and the given extra fields."""
    needle = (search_term or "").strip().casefold()
    if not needle:
        return True
    return any(needle in _text(item, name).casefold() for name in ("name", *search_fields))


def project_collection(
    items: Sequence[Any],
    search_term: str | None = None,
    search_fields: Iterable[str] = (),
) -> list[ProjectedEntity]:
    """Filter and sort a collection for display.

    The first/last flags are computed against the whole collection so that a
    filtered view never offers a move that would be a no-op.
    """
    search_fields = tuple(search_fields)
    ordered = sorted_by_order(items)
    return [
        ProjectedEntity(
            entity=item,
            is_first=is_first(ordered, id_of(item)),
            is_last=is_last(ordered, id_of(item)),
        )
        for item in ordered
        if matches_search(item, search_term, search_fields)
    ]


def order_by_name(items: Iterable[Any]) -> dict[str, int]:
    return {_text(item, "name"): order_of(item) for item in items}


def sort_tasks_by_priority(tasks: Iterable[Any], priorities: Iterable[Any]) -> list[Any]:
    """Sort tasks by their priority's order; unknown priorities sort last."""
    ranks = order_by_name(priorities)
    return sorted(tasks, key=lambda task: ranks.get(_text(task, "priority"), math.inf))
