"""Per-run capacity ledger: how many extra riders each active route can take."""
from typing import Dict, Iterable, List, Mapping

import numpy as np

from src.models import Route


class CapacityLedger:
    """
    Snapshot of remaining seats per route for one optimization run.

    remaining = capacity - confirmed passengers, clipped at zero. With
    decrement_on_assign=False (default) the ledger never changes during the
    run, so several passengers may be placed on the same last seat.
    """

    def __init__(self, remaining: Mapping[str, int], decrement_on_assign: bool = False):
        self._remaining: Dict[str, int] = {k: max(int(v), 0) for k, v in remaining.items()}
        self.decrement_on_assign = decrement_on_assign

    @classmethod
    def from_counts(cls, routes: Iterable[Route], passenger_counts: Mapping[str, int],
                    nominal_capacity: int, decrement_on_assign: bool = False) -> "CapacityLedger":
        routes = list(routes)
        if not routes:
            return cls({}, decrement_on_assign)
        capacities = np.array(
            [r.capacity if r.capacity is not None else nominal_capacity for r in routes],
            dtype=np.int64,
        )
        counts = np.array([int(passenger_counts.get(r.id, 0)) for r in routes], dtype=np.int64)
        remaining = np.clip(capacities - counts, 0, None)
        return cls(
            {r.id: int(v) for r, v in zip(routes, remaining)},
            decrement_on_assign,
        )

    def remaining_capacity(self, route_id: str) -> int:
        return self._remaining.get(route_id, 0)

    def has_capacity(self, route_id: str) -> bool:
        return self.remaining_capacity(route_id) > 0

    def transfer_targets(self, source_route_id: str, routes: Iterable[Route]) -> List[Route]:
        """Other routes with spare seats, in catalog order."""
        return [
            r for r in routes
            if r.id != source_route_id and self.has_capacity(r.id)
        ]

    def reserve(self, route_id: str) -> None:
        if self.decrement_on_assign and self.has_capacity(route_id):
            self._remaining[route_id] -= 1

    def snapshot(self) -> Dict[str, int]:
        return dict(self._remaining)
