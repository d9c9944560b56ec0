# -*- coding: utf-8 -*-
"""
Domain records for the route transfer engine.

Route/Stop/Booking are read-only snapshots of the catalog for one run.
PassengerTransfer and RouteOptimizationResult are computed per run;
OptimizationRun is the immutable audit record written at the end.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

REGULAR = "regular"
POSSIBLE = "possible"

FULL_TRANSFER = "full_transfer"
PARTIAL_TRANSFER = "partial_transfer"
NO_TRANSFER = "no_transfer"


@dataclass(frozen=True)
class Route:
    id: str
    route_name: str
    route_number: Optional[str] = None
    status: str = "active"
    capacity: Optional[int] = None  # None → OptimizationParams.nominal_capacity
    start_location: Optional[str] = None
    end_location: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "route_name": self.route_name,
            "route_number": self.route_number,
            "status": self.status,
        }


@dataclass(frozen=True)
class Stop:
    id: Optional[int]
    route_id: str
    stop_name: str
    stop_time: Optional[str] = None
    sequence_order: int = 0
    category: str = REGULAR
    source_route_id: Optional[str] = None
    source_route_name: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    is_major_stop: bool = False

    @property
    def is_possible(self) -> bool:
        return self.category == POSSIBLE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "route_id": self.route_id,
            "stop_name": self.stop_name,
            "stop_time": self.stop_time,
            "sequence_order": self.sequence_order,
            "stop_category": self.category,
            "source_route_id": self.source_route_id,
            "source_route_name": self.source_route_name,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "is_major_stop": self.is_major_stop,
        }


@dataclass(frozen=True)
class Booking:
    student_id: str
    route_id: str
    trip_date: str
    boarding_stop: Optional[str]
    student_name: Optional[str] = None
    roll_number: Optional[str] = None
    seat_number: Optional[str] = None
    status: str = "confirmed"


@dataclass(frozen=True)
class PassengerTransfer:
    student_id: str
    student_name: str
    roll_number: str
    current_stop: Optional[str]
    target_route_id: str
    target_route_name: str
    matching_stop: str
    stop_category: str
    source_route_name: Optional[str]
    available_capacity: int
    match_tier: str

    @property
    def transfer_type(self) -> str:
        return "possible_stop" if self.stop_category == POSSIBLE else "regular_stop"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "studentId": self.student_id,
            "studentName": self.student_name,
            "rollNumber": self.roll_number,
            "currentStop": self.current_stop,
            "targetRoute": self.target_route_name,
            "targetRouteId": self.target_route_id,
            "matchingStop": self.matching_stop,
            "stopCategory": self.stop_category,
            "sourceRouteName": self.source_route_name,
            "availableCapacity": self.available_capacity,
            "matchTier": self.match_tier,
            "transferType": self.transfer_type,
        }


@dataclass(frozen=True)
class RouteOptimizationResult:
    route_id: str
    route_name: str
    route_number: Optional[str]
    current_passengers: int
    transferable_passengers: int
    transfer_classification: str
    potential_savings: int
    passenger_transfers: Tuple[PassengerTransfer, ...] = ()
    unmatched_passengers: Tuple[Dict[str, Any], ...] = ()

    @property
    def enhanced_stops_used(self) -> int:
        return sum(1 for t in self.passenger_transfers if t.stop_category == POSSIBLE)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "routeId": self.route_id,
            "routeName": self.route_name,
            "routeNumber": self.route_number,
            "currentPassengers": self.current_passengers,
            "transferablePassengers": self.transferable_passengers,
            "transferClassification": self.transfer_classification,
            "potentialSavings": self.potential_savings,
            "passengerTransfers": [t.to_dict() for t in self.passenger_transfers],
            "unmatchedPassengers": [dict(p) for p in self.unmatched_passengers],
            "enhancedStopsUsed": self.enhanced_stops_used,
        }


@dataclass(frozen=True)
class RouteLoad:
    route_id: str
    route_name: str
    route_number: Optional[str]
    passenger_count: int
    load_category: str  # no_bookings | low_crowd | normal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "routeId": self.route_id,
            "routeName": self.route_name,
            "routeNumber": self.route_number,
            "passengerCount": self.passenger_count,
            "loadCategory": self.load_category,
        }


@dataclass(frozen=True)
class OptimizationRun:
    optimization_date: str
    created_by: str
    results: Tuple[RouteOptimizationResult, ...]
    use_enhanced_stops: bool = False
    id: Optional[int] = None
    created_at: Optional[str] = None

    @property
    def total_low_crowd_buses(self) -> int:
        return len(self.results)

    @property
    def total_passengers_affected(self) -> int:
        return sum(r.transferable_passengers for r in self.results)

    def _count(self, classification: str) -> int:
        return sum(1 for r in self.results if r.transfer_classification == classification)

    @property
    def full_transfers(self) -> int:
        return self._count(FULL_TRANSFER)

    @property
    def partial_transfers(self) -> int:
        return self._count(PARTIAL_TRANSFER)

    @property
    def no_transfers(self) -> int:
        return self._count(NO_TRANSFER)

    @property
    def potential_savings(self) -> int:
        return sum(r.potential_savings for r in self.results)

    @property
    def enhanced_stops_used(self) -> int:
        return sum(r.enhanced_stops_used for r in self.results)

    def summary(self) -> Dict[str, Any]:
        return {
            "totalLowCrowdBuses": self.total_low_crowd_buses,
            "totalPassengersAffected": self.total_passengers_affected,
            "fullTransfers": self.full_transfers,
            "partialTransfers": self.partial_transfers,
            "noTransfers": self.no_transfers,
            "potentialSavings": self.potential_savings,
            "enhancedStopsUsed": self.enhanced_stops_used,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "optimizationId": self.id,
            "optimizationDate": self.optimization_date,
            "createdBy": self.created_by,
            "createdAt": self.created_at,
            "summary": self.summary(),
            "lowCrowdRoutes": [r.to_dict() for r in self.results],
            "useEnhancedStops": self.use_enhanced_stops,
        }


@dataclass(frozen=True)
class PlanOutcome:
    """Result of one planner invocation: a run, or the no-low-crowd answer."""
    optimization_date: str
    route_analysis: Tuple[RouteLoad, ...]
    run: Optional[OptimizationRun] = None

    @property
    def has_low_crowd_routes(self) -> bool:
        return self.run is not None

    def to_dict(self) -> Dict[str, Any]:
        analysis = [r.to_dict() for r in self.route_analysis]
        if self.run is None:
            return {
                "hasLowCrowdRoutes": False,
                "message": "No low-crowd routes found for optimization",
                "optimizationDate": self.optimization_date,
                "routeAnalysis": analysis,
            }
        body = self.run.to_dict()
        body["hasLowCrowdRoutes"] = True
        body["routeAnalysis"] = analysis
        return body


@dataclass
class AddPossibleStopsResult:
    added: List[Stop] = field(default_factory=list)
    skipped: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def message(self) -> str:
        added, skipped = len(self.added), len(self.skipped)
        if skipped == 0:
            return f"Successfully added {added} possible stop{'' if added == 1 else 's'}"
        if added == 0:
            verb = "was" if skipped == 1 else "were"
            return (f"No new stops added - all {skipped} selected "
                    f"stop{'' if skipped == 1 else 's'} {verb} already present")
        verb = "was" if skipped == 1 else "were"
        return (f"Successfully added {added} new stop{'' if added == 1 else 's'}. "
                f"{skipped} stop{'' if skipped == 1 else 's'} {verb} already present and skipped")
