# -*- coding: utf-8 -*-
"""
Stop Registry
=============
Owns each route's regular stops (its own schedule) and possible stops
(stops borrowed from other routes, used only for transfer matching).

(route_id, stop_name, source_route_id) is unique among possible stops;
re-adding an existing triple is reported as skipped, not as an error.
"""
import logging
import sqlite3
from typing import Any, Dict, Iterable, List, Mapping, Optional

from src.database import TransportDatabase, is_foreign_key_violation, is_unique_violation
from src.errors import ConflictError, DependencyError, NotFoundError, ValidationError
from src.models import AddPossibleStopsResult, Stop
from src.utils import normalize_stop_name

REQUIRED_CANDIDATE_FIELDS = ("stop_name", "stop_time", "source_route_id")
MAX_SEARCH_LIMIT = 100


def _is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class StopRegistry:
    def __init__(self, db: TransportDatabase):
        self.db = db

    def _require_route(self, route_id: str):
        if _is_blank(route_id):
            raise ValidationError("Route ID is required", field="routeId")
        try:
            route = self.db.get_route(route_id)
        except sqlite3.Error as e:
            raise DependencyError("Failed to load route", details=str(e))
        if route is None:
            raise NotFoundError(f"Route not found: {route_id}", field="routeId")
        return route

    # ----- reads -------------------------------------------------------------

    def list_stops(self, route_id: str) -> List[Stop]:
        """Regular and possible stops of a route, ordered by sequence."""
        self._require_route(route_id)
        return self._combined_stops(route_id)

    def _combined_stops(self, route_id: str) -> List[Stop]:
        stops = self.db.fetch_regular_stops(route_id) + self.db.fetch_possible_stops(route_id)
        # stable sort: regular stops come before possible ones on equal sequence
        return sorted(stops, key=lambda s: (s.sequence_order, 0 if not s.is_possible else 1))

    def list_possible_stops(self, route_id: str) -> List[Stop]:
        self._require_route(route_id)
        try:
            return self.db.fetch_possible_stops(route_id)
        except sqlite3.Error as e:
            raise DependencyError("Failed to fetch possible stops", details=str(e))

    def build_stop_index(self, route_ids: Iterable[str]) -> Dict[str, List[Stop]]:
        """route_id → combined stop list, built once per run.

        A route whose lookup fails is logged and left out of the index.
        """
        index: Dict[str, List[Stop]] = {}
        for route_id in route_ids:
            try:
                index[route_id] = self._combined_stops(route_id)
            except Exception as e:
                logging.warning("Stop lookup failed for route %s, skipping as target: %s", route_id, e)
        return index

    def search_stops(self, query: str = "", exclude_route_id: Optional[str] = None,
                     limit: int = 20) -> List[Dict[str, Any]]:
        """Regular stops matching query, grouped by owning route."""
        if limit < 1 or limit > MAX_SEARCH_LIMIT:
            raise ValidationError(f"limit must be between 1 and {MAX_SEARCH_LIMIT}", field="limit")
        try:
            rows = self.db.search_regular_stops((query or "").strip(), exclude_route_id, limit)
        except sqlite3.Error as e:
            raise DependencyError("Failed to search stops", details=str(e))

        grouped: Dict[str, Dict[str, Any]] = {}
        for row in rows:
            route_id = row["route_id"]
            if route_id not in grouped:
                grouped[route_id] = {
                    "route": {
                        "id": route_id,
                        "route_name": row["route_name"] or f"Route {route_id}",
                        "route_number": row["route_number"],
                    },
                    "stops": [],
                }
            grouped[route_id]["stops"].append({
                "id": row["id"],
                "stop_name": row["stop_name"],
                "stop_time": row["stop_time"],
                "sequence_order": row["sequence_order"],
                "route_id": route_id,
                "is_major_stop": False,
            })
        return list(grouped.values())

    # ----- writes ------------------------------------------------------------

    @staticmethod
    def _prepare_candidates(candidates: List[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        prepared = []
        for index, stop in enumerate(candidates):
            if not isinstance(stop, Mapping):
                raise ValidationError(
                    f"Stop {index + 1} must be an object", field=f"possibleStops[{index}]"
                )
            for name in REQUIRED_CANDIDATE_FIELDS:
                if _is_blank(stop.get(name)):
                    raise ValidationError(
                        f"Missing required field {name} in stop {index + 1}",
                        field=f"possibleStops[{index}].{name}",
                    )
            prepared.append({
                "stop_name": str(stop["stop_name"]).strip(),
                "stop_time": str(stop["stop_time"]),
                "sequence_order": index + 1 if stop.get("sequence_order") is None else stop["sequence_order"],
                "source_route_id": str(stop["source_route_id"]),
                "latitude": stop.get("latitude"),
                "longitude": stop.get("longitude"),
                "is_major_stop": bool(stop.get("is_major_stop") or False),
            })
        return prepared

    def add_possible_stops(self, route_id: str,
                           candidates: List[Mapping[str, Any]]) -> AddPossibleStopsResult:
        if candidates is None or not isinstance(candidates, (list, tuple)):
            raise ValidationError("Invalid possible stops data - must be an array", field="possibleStops")
        prepared = self._prepare_candidates(list(candidates))
        self._require_route(route_id)

        try:
            existing = self.db.find_existing_possible_stops(route_id)
        except sqlite3.Error as e:
            raise DependencyError("Failed to check existing possible stops", details=str(e))

        result = AddPossibleStopsResult()
        queued = []
        for stop in prepared:
            key = (stop["stop_name"], stop["source_route_id"])
            if key in existing:
                logging.info("Skipping duplicate possible stop %s (source %s) on route %s",
                             key[0], key[1], route_id)
                result.skipped.append({"stop_name": key[0], "source_route_id": key[1]})
                continue
            existing.add(key)
            queued.append(stop)

        if not queued:
            return result

        try:
            result.added = self.db.insert_possible_stops(route_id, queued)
        except sqlite3.IntegrityError as e:
            if is_unique_violation(e):
                raise ConflictError(
                    "Duplicate possible stop",
                    details="One or more of the selected stops are already added as possible stops for this route",
                )
            if is_foreign_key_violation(e):
                raise ValidationError(
                    "Invalid route reference",
                    field="source_route_id",
                    details="One or more route IDs are invalid",
                    error_type="foreign_key_constraint",
                )
            raise DependencyError("Failed to add possible stops", details=str(e))
        except sqlite3.Error as e:
            raise DependencyError("Failed to add possible stops", details=str(e))

        logging.info("Added %d possible stops to route %s (%d skipped)",
                     len(result.added), route_id, len(result.skipped))
        return result

    def delete_possible_stop(self, route_id: str, stop_id: int) -> None:
        if _is_blank(route_id):
            raise ValidationError("Route ID is required", field="routeId")
        if stop_id is None:
            raise ValidationError("Stop ID is required", field="stopId")
        try:
            deleted = self.db.delete_possible_stop(route_id, stop_id)
        except sqlite3.Error as e:
            raise DependencyError("Failed to delete possible stop", details=str(e))
        if deleted == 0:
            raise NotFoundError(f"Possible stop {stop_id} not found on route {route_id}", field="stopId")

    def populate_possible_stops(self) -> int:
        """
        Borrow stops between overlapping active routes.

        Two routes overlap when they share at least one regular stop name.
        The other route's remaining regular stops become possible stops of
        this route. Safe to re-run: existing triples are skipped.
        """
        routes = self.db.fetch_routes(status="active")
        regular = {r.id: self.db.fetch_regular_stops(r.id) for r in routes}
        names = {
            rid: {normalize_stop_name(s.stop_name) for s in stops}
            for rid, stops in regular.items()
        }

        added = 0
        for route in routes:
            candidates = []
            for other in routes:
                if other.id == route.id or not (names[route.id] & names[other.id]):
                    continue
                for stop in regular[other.id]:
                    if normalize_stop_name(stop.stop_name) in names[route.id]:
                        continue
                    candidates.append({
                        "stop_name": stop.stop_name,
                        "stop_time": stop.stop_time or "00:00",
                        "sequence_order": stop.sequence_order,
                        "source_route_id": other.id,
                        "latitude": stop.latitude,
                        "longitude": stop.longitude,
                        "is_major_stop": stop.is_major_stop,
                    })
            if not candidates:
                continue
            try:
                added += len(self.add_possible_stops(route.id, candidates).added)
            except ConflictError:
                logging.info("Possible stops for route %s already populated concurrently", route.id)
        logging.info("Possible stop population complete: %d added", added)
        return added
