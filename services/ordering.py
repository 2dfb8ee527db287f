"""Order computations for manually ordered collections.

Every function here is pure: it reads a list of records (model instances or
dicts exposing ``id`` and ``order``) and returns new values without touching
the database.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Iterable, Sequence

from services.errors import ValidationError


class MoveDirection(StrEnum):
    UP = "up"
    DOWN = "down"

    @classmethod
    def parse(cls, raw: Any) -> "MoveDirection":
        if isinstance(raw, cls):
            return raw
        try:
            return cls(str(raw or "").strip().lower())
        except ValueError as exc:
            raise ValidationError(
                "Direction must be either 'up' or 'down'.", field="direction"
            ) from exc


@dataclass(frozen=True)
class OrderAssignment:
    id: int
    order: int

    def to_dict(self) -> dict[str, int]:
        return {"id": self.id, "order": self.order}


def _field(item: Any, name: str) -> Any:
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def order_of(item: Any) -> int:
    value = _field(item, "order")
    return int(value) if value is not None else 0


def id_of(item: Any) -> Any:
    return _field(item, "id")


def sort_key(item: Any) -> tuple[int, Any]:
    """Ties on ``order`` are broken by ``id`` so the sort is deterministic."""
    return order_of(item), id_of(item)


def sorted_by_order(items: Iterable[Any]) -> list[Any]:
    return sorted(items, key=sort_key)


def next_order(items: Iterable[Any]) -> int:
    """Return the order that appends a new record after every existing one."""
    orders = [order_of(item) for item in items]
    return max(orders) + 1 if orders else 0


def _locate(items: Sequence[Any], entity_id: Any) -> Any | None:
    return next((item for item in items if id_of(item) == entity_id), None)


def find_neighbor(items: Iterable[Any], entity_id: Any, direction: MoveDirection) -> Any | None:
    """Return the record that ``entity_id`` swaps with when moved, if any.

    Moving up picks the greatest ``(order, id)`` whose order is strictly lower;
    moving down picks the least ``(order, id)`` whose order is strictly higher.
    """
    ordered = sorted_by_order(items)
    current = _locate(ordered, entity_id)
    if current is None:
        return None
    current_order = order_of(current)
    if direction == MoveDirection.UP:
        candidates = [item for item in ordered if order_of(item) < current_order]
        return candidates[-1] if candidates else None
    candidates = [item for item in ordered if order_of(item) > current_order]
    return candidates[0] if candidates else None


def is_first(items: Iterable[Any], entity_id: Any) -> bool:
    """True when moving ``entity_id`` up would be a no-op."""
    items = list(items)
    if _locate(items, entity_id) is None:
        return False
    return find_neighbor(items, entity_id, MoveDirection.UP) is None


def is_last(items: Iterable[Any], entity_id: Any) -> bool:
    """True when moving ``entity_id`` down would be a no-op."""
    items = list(items)
    if _locate(items, entity_id) is None:
        return False
    return find_neighbor(items, entity_id, MoveDirection.DOWN) is None


def compute_move(
    items: Iterable[Any], entity_id: Any, direction: MoveDirection | str
) -> list[OrderAssignment] | None:
    """Compute the order assignment produced by moving one record.

    The moved record swaps its order with its neighbor, then the whole
    collection is renumbered ``0..n-1`` in the resulting sequence. Returns
    ``None`` when the move changes nothing: unknown id, or a record already at
    the boundary in that direction.
    """
    direction = MoveDirection.parse(direction)
    ordered = sorted_by_order(items)
    if len(ordered) < 2:
        return None
    current = _locate(ordered, entity_id)
    if current is None:
        return None
    neighbor = find_neighbor(ordered, entity_id, direction)
    if neighbor is None:
        return None

    tentative = {id_of(item): order_of(item) for item in ordered}
    tentative[id_of(current)] = order_of(neighbor)
    tentative[id_of(neighbor)] = order_of(current)

    # Equal tentative orders keep their original relative position.
    positioned = sorted(
        enumerate(ordered),
        key=lambda pair: (tentative[id_of(pair[1])], pair[0]),
    )
    return [
        OrderAssignment(id=id_of(item), order=index)
        for index, (_, item) in enumerate(positioned)
    ]
