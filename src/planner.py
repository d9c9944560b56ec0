# -*- coding: utf-8 -*-
"""
Transfer Planner
================
One optimization run for a service date:

    1. load active routes + confirmed bookings (catalog failure → DependencyError)
    2. underutilized  ⇔  0 < passengers ≤ low_crowd_threshold
    3. per underutilized route, per booking: first target route (catalog
       order, spare capacity > 0) whose stops match the boarding stop
    4. classify   full_transfer   every passenger matched
                  no_transfer     nobody matched
                  partial_transfer otherwise
    5. savings    full → full_transfer_savings
                  partial → per_passenger_savings × transferable
                  none → 0
    6. persist an OptimizationRun

The procedure is a first-match greedy heuristic, not a global assignment.
"""
import logging
import time
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from src.capacity import CapacityLedger
from src.config import OptimizationParams
from src.database import TransportDatabase
from src.errors import DependencyError, ValidationError
from src.models import (
    FULL_TRANSFER, NO_TRANSFER, PARTIAL_TRANSFER,
    Booking, OptimizationRun, PassengerTransfer, PlanOutcome, Route,
    RouteLoad, RouteOptimizationResult,
)
from src.stop_matcher import StopMatcher
from src.stop_registry import StopRegistry
from src.utils import parse_service_date

NO_MATCH_REASON = "No alternative route covers this boarding stop with available capacity"


def classify_transfer(transferable: int, current: int) -> str:
    if current > 0 and transferable == current:
        return FULL_TRANSFER
    if transferable == 0:
        return NO_TRANSFER
    return PARTIAL_TRANSFER


def estimate_savings(classification: str, transferable: int, params: OptimizationParams) -> int:
    if classification == FULL_TRANSFER:
        return params.full_transfer_savings
    if classification == PARTIAL_TRANSFER:
        return params.per_passenger_savings * transferable
    return 0


def _text(value, default: str) -> str:
    if value is None or pd.isna(value) or value == "":
        return default
    return str(value)


class TransferPlanner:
    def __init__(self, db: TransportDatabase, stop_registry: Optional[StopRegistry] = None,
                 matcher: Optional[StopMatcher] = None,
                 params: Optional[OptimizationParams] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.db = db
        self.params = params or OptimizationParams()
        self.stop_registry = stop_registry or StopRegistry(db)
        self.matcher = matcher or StopMatcher.from_params(self.params)
        self._clock = clock

    # ----- public ------------------------------------------------------------

    def run(self, optimization_date, requester_id, use_enhanced_stops: bool = False) -> PlanOutcome:
        date_str = self._validate(optimization_date, requester_id)
        deadline = self._clock() + self.params.run_deadline_seconds
        logging.info("Route optimization requested: date=%s requester=%s enhanced=%s",
                     date_str, requester_id, use_enhanced_stops)

        if use_enhanced_stops:
            try:
                self.stop_registry.populate_possible_stops()
            except Exception:
                logging.exception("Possible stop population failed; using existing possible stops")

        routes, bookings = self._load_catalog(date_str)
        self._check_deadline(deadline)

        counts = bookings.groupby("route_id").size().to_dict() if not bookings.empty else {}
        analysis = self.route_analysis(routes, counts)
        low_crowd = [
            r for r in routes
            if 0 < counts.get(r.id, 0) <= self.params.low_crowd_threshold
        ]
        logging.info("Found %d low-crowd routes out of %d active routes", len(low_crowd), len(routes))

        if not low_crowd:
            return PlanOutcome(optimization_date=date_str, route_analysis=tuple(analysis))

        ledger = CapacityLedger.from_counts(
            routes, counts, self.params.nominal_capacity, self.params.decrement_on_assign
        )
        stop_index = self.stop_registry.build_stop_index(r.id for r in routes)
        bookings_by_route = self._group_bookings(bookings)

        results = []
        for route in low_crowd:
            self._check_deadline(deadline)
            results.append(self._plan_route(
                route, bookings_by_route.get(route.id, []), routes, ledger, stop_index, deadline
            ))

        run = OptimizationRun(
            optimization_date=date_str,
            created_by=str(requester_id),
            results=tuple(results),
            use_enhanced_stops=bool(use_enhanced_stops),
        )
        run = self._persist(run)
        logging.info("Optimization complete for %s: potential savings %d", date_str, run.potential_savings)
        return PlanOutcome(optimization_date=date_str, route_analysis=tuple(analysis), run=run)

    def route_analysis(self, routes: List[Route], counts: Dict[str, int]) -> List[RouteLoad]:
        """Passenger count and load category for every active route."""
        if not routes:
            return []
        passengers = np.array([int(counts.get(r.id, 0)) for r in routes])
        categories = np.select(
            [passengers == 0, passengers <= self.params.low_crowd_threshold],
            ["no_bookings", "low_crowd"],
            default="normal",
        )
        return [
            RouteLoad(
                route_id=r.id,
                route_name=r.route_name,
                route_number=r.route_number,
                passenger_count=int(n),
                load_category=str(c),
            )
            for r, n, c in zip(routes, passengers, categories)
        ]

    # ----- steps -------------------------------------------------------------

    @staticmethod
    def _validate(optimization_date, requester_id) -> str:
        if optimization_date is None or not str(optimization_date).strip():
            raise ValidationError("Missing required parameter: date", field="date")
        if requester_id is None or not str(requester_id).strip():
            raise ValidationError("Missing required parameter: requesterId", field="requesterId")
        try:
            return parse_service_date(optimization_date).isoformat()
        except ValueError:
            raise ValidationError(
                f"Invalid date {optimization_date!r}, expected YYYY-MM-DD", field="date"
            )

    def _load_catalog(self, date_str: str) -> Tuple[List[Route], pd.DataFrame]:
        try:
            routes = self.db.fetch_routes(status="active")
            bookings = self.db.fetch_bookings_frame(date_str)
        except Exception as e:
            logging.error("Failed to load route/booking catalog: %s", e, exc_info=True)
            raise DependencyError("Failed to load route and booking catalog", details=str(e))
        active_ids = {r.id for r in routes}
        if not bookings.empty:
            bookings = bookings[bookings["route_id"].isin(active_ids)]
        return routes, bookings

    def _check_deadline(self, deadline: float) -> None:
        if self._clock() > deadline:
            raise DependencyError(
                f"Optimization run exceeded {self.params.run_deadline_seconds:g}s deadline"
            )

    @staticmethod
    def _group_bookings(bookings: pd.DataFrame) -> Dict[str, List[Booking]]:
        grouped: Dict[str, List[Booking]] = {}
        for row in bookings.itertuples(index=False):
            grouped.setdefault(row.route_id, []).append(Booking(
                student_id=str(row.student_id),
                route_id=row.route_id,
                trip_date=row.trip_date,
                boarding_stop=None if pd.isna(row.boarding_stop) else row.boarding_stop,
                student_name=_text(row.student_name, "Unknown"),
                roll_number=_text(row.roll_number, "Unknown"),
                seat_number=None if pd.isna(row.seat_number) else str(row.seat_number),
                status=row.status,
            ))
        return grouped

    def _plan_route(self, route: Route, passengers: List[Booking], routes: List[Route],
                    ledger: CapacityLedger, stop_index, deadline: float) -> RouteOptimizationResult:
        targets = ledger.transfer_targets(route.id, routes)
        logging.info("Analyzing route %s (%d passengers, %d candidate targets)",
                     route.route_name, len(passengers), len(targets))

        transfers = []
        unmatched = []
        for booking in passengers:
            self._check_deadline(deadline)
            transfer = self._match_passenger(booking, targets, ledger, stop_index)
            if transfer is None:
                unmatched.append({
                    "studentId": booking.student_id,
                    "studentName": booking.student_name,
                    "currentStop": booking.boarding_stop,
                    "reason": NO_MATCH_REASON,
                })
            else:
                transfers.append(transfer)

        classification = classify_transfer(len(transfers), len(passengers))
        return RouteOptimizationResult(
            route_id=route.id,
            route_name=route.route_name,
            route_number=route.route_number,
            current_passengers=len(passengers),
            transferable_passengers=len(transfers),
            transfer_classification=classification,
            potential_savings=estimate_savings(classification, len(transfers), self.params),
            passenger_transfers=tuple(transfers),
            unmatched_passengers=tuple(unmatched),
        )

    def _match_passenger(self, booking: Booking, targets: List[Route], ledger: CapacityLedger,
                         stop_index) -> Optional[PassengerTransfer]:
        for target in targets:
            stops = stop_index.get(target.id)
            if stops is None or not ledger.has_capacity(target.id):
                continue
            match = self.matcher.match(booking.boarding_stop, stops)
            if match is None:
                continue
            available = ledger.remaining_capacity(target.id)
            ledger.reserve(target.id)
            return PassengerTransfer(
                student_id=booking.student_id,
                student_name=booking.student_name or "Unknown",
                roll_number=booking.roll_number or "Unknown",
                current_stop=booking.boarding_stop,
                target_route_id=target.id,
                target_route_name=target.route_name,
                matching_stop=match.stop_name,
                stop_category=match.category,
                source_route_name=match.source_route_name,
                available_capacity=available,
                match_tier=match.tier.value,
            )
        return None

    def _persist(self, run: OptimizationRun) -> OptimizationRun:
        try:
            run_id, created_at = self.db.insert_optimization_run(run)
        except Exception:
            logging.exception("Error creating optimization record for %s", run.optimization_date)
            return run
        return replace(run, id=run_id, created_at=created_at)
