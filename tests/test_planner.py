# -*- coding: utf-8 -*-
"""TransferPlanner 테스트 (저이용 노선 탐지, 승객 매칭, 분류/절감액, 이력 저장)"""
import itertools
import sqlite3

import pytest

from conftest import SERVICE_DATE, add_bookings, add_route
from src.config import OptimizationParams
from src.errors import DependencyError, ValidationError
from src.models import FULL_TRANSFER, NO_TRANSFER, PARTIAL_TRANSFER
from src.planner import NO_MATCH_REASON, TransferPlanner, classify_transfer, estimate_savings


class TestClassification:

    @pytest.mark.parametrize("transferable,current,expected", [
        (3, 3, FULL_TRANSFER),
        (2, 3, PARTIAL_TRANSFER),
        (0, 3, NO_TRANSFER),
        (0, 0, NO_TRANSFER),
    ])
    def test_classify_transfer(self, transferable, current, expected):
        assert classify_transfer(transferable, current) == expected

    def test_estimate_savings(self):
        params = OptimizationParams()
        assert estimate_savings(FULL_TRANSFER, 12, params) == 5000
        assert estimate_savings(PARTIAL_TRANSFER, 7, params) == 350
        assert estimate_savings(NO_TRANSFER, 0, params) == 0


class TestScenario:
    """Route A(3명) → Route B(잔여 5석, 가능 정류장 Main Junction) 이관"""

    @pytest.fixture
    def outcome(self, scenario_database):
        return TransferPlanner(scenario_database).run(SERVICE_DATE, "admin-1")

    def test_route_a_is_partial_transfer(self, outcome):
        assert outcome.has_low_crowd_routes
        run = outcome.run
        assert [r.route_id for r in run.results] == ["route-a"]

        result = run.results[0]
        assert result.current_passengers == 3
        assert result.transferable_passengers == 2
        assert result.transfer_classification == PARTIAL_TRANSFER
        assert result.potential_savings == 100
        assert result.enhanced_stops_used == 1

    def test_main_stop_goes_to_possible_stop(self, outcome):
        """'Main Stop' 승객은 Route B의 가능 정류장 Main Junction으로 매칭된다."""
        transfer = outcome.run.results[0].passenger_transfers[0].to_dict()

        assert transfer["studentId"] == "route-a-s0"
        assert transfer["currentStop"] == "Main Stop"
        assert transfer["targetRouteId"] == "route-b"
        assert transfer["targetRoute"] == "Route B"
        assert transfer["matchingStop"] == "Main Junction"
        assert transfer["stopCategory"] == "possible"
        assert transfer["sourceRouteName"] == "Route C"
        assert transfer["availableCapacity"] == 5
        assert transfer["matchTier"] == "alias_keyword"
        assert transfer["transferType"] == "possible_stop"

    def test_exact_stop_match_is_regular(self, outcome):
        transfer = outcome.run.results[0].passenger_transfers[1]

        assert transfer.matching_stop == "Erode Bus Stand"
        assert transfer.stop_category == "regular"
        assert transfer.source_route_name is None
        assert transfer.match_tier == "exact"
        assert transfer.student_name == "Student route-a1"
        assert transfer.roll_number == "ROUTE-A001"

    def test_unmatched_passenger_is_reported(self, outcome):
        unmatched = outcome.run.results[0].unmatched_passengers
        assert unmatched == ({
            "studentId": "route-a-s2",
            "studentName": "Student route-a2",
            "currentStop": "Unknown Corner",
            "reason": NO_MATCH_REASON,
        },)

    def test_summary(self, outcome):
        assert outcome.run.summary() == {
            "totalLowCrowdBuses": 1,
            "totalPassengersAffected": 2,
            "fullTransfers": 0,
            "partialTransfers": 1,
            "noTransfers": 0,
            "potentialSavings": 100,
            "enhancedStopsUsed": 1,
        }

    def test_route_analysis_covers_every_active_route(self, outcome):
        analysis = [(r.route_id, r.passenger_count, r.load_category) for r in outcome.route_analysis]
        assert analysis == [
            ("route-a", 3, "low_crowd"),
            ("route-b", 55, "normal"),
            ("route-c", 0, "no_bookings"),
        ]

    def test_run_is_persisted(self, outcome, scenario_database):
        run = outcome.run
        assert run.id is not None
        assert run.created_at is not None
        assert run.created_by == "admin-1"
        assert scenario_database.count_optimization_runs() == 1

        record = scenario_database.get_optimization_run(run.id)
        assert record["optimizationDate"] == SERVICE_DATE
        assert record["summary"] == run.summary()
        assert record["lowCrowdRoutes"] == run.to_dict()["lowCrowdRoutes"]

    def test_response_body(self, outcome):
        body = outcome.to_dict()
        assert body["hasLowCrowdRoutes"] is True
        assert body["optimizationId"] == outcome.run.id
        assert body["useEnhancedStops"] is False
        assert len(body["routeAnalysis"]) == 3


class TestTransferOutcomes:

    def test_full_transfer(self, database):
        add_route(database, "small", "Small", ["Kolathur"])
        add_route(database, "big", "Big", ["Chithode", "Erode Bus Stand"])
        add_bookings(database, "small", ["Chithode", "erode  bus stand"])
        add_bookings(database, "big", ["Chithode"] * 40)

        run = TransferPlanner(database).run(SERVICE_DATE, "admin").run

        assert run.full_transfers == 1
        result = run.results[0]
        assert result.transfer_classification == FULL_TRANSFER
        assert result.potential_savings == 5000
        assert {t.target_route_id for t in result.passenger_transfers} == {"big"}

    def test_no_transfer_without_spare_capacity(self, database):
        """후보 노선이 만석이면 매칭 정류장이 있어도 이관하지 않는다."""
        add_route(database, "small", "Small", ["Kolathur"])
        add_route(database, "full", "Full", ["Erode Bus Stand"], capacity=40)
        add_bookings(database, "small", ["Erode Bus Stand", "Erode Bus Stand"])
        add_bookings(database, "full", ["Erode Bus Stand"] * 40)

        result = TransferPlanner(database).run(SERVICE_DATE, "admin").run.results[0]

        assert result.transfer_classification == NO_TRANSFER
        assert result.potential_savings == 0
        assert result.passenger_transfers == ()
        assert len(result.unmatched_passengers) == 2

    def test_first_target_in_catalog_order_wins(self, database):
        add_route(database, "small", "Small", ["Kolathur"])
        add_route(database, "first", "First", ["Bhavani"])
        add_route(database, "second", "Second", ["Bhavani"])
        add_bookings(database, "small", ["Bhavani"])

        transfer = TransferPlanner(database).run(SERVICE_DATE, "admin").run.results[0].passenger_transfers[0]
        assert transfer.target_route_id == "first"

    def test_low_crowd_routes_can_receive_transfers(self, database):
        """저이용 노선끼리도 서로의 이관 대상이 될 수 있다."""
        add_route(database, "r1", "R1", ["Gobi Bus Stand"])
        add_route(database, "r2", "R2", ["Gobi Bus Stand"])
        add_bookings(database, "r1", ["Gobi Bus Stand"])
        add_bookings(database, "r2", ["Gobi Bus Stand"] * 2)

        run = TransferPlanner(database).run(SERVICE_DATE, "admin").run

        assert run.total_low_crowd_buses == 2
        assert run.full_transfers == 2
        assert run.potential_savings == 10000

    @pytest.mark.parametrize("decrement,expected", [(False, 2), (True, 1)])
    def test_decrement_on_assign(self, database, decrement, expected):
        add_route(database, "small", "Small", ["Kolathur"])
        add_route(database, "nearly-full", "Nearly Full", ["Erode Bus Stand"], capacity=56)
        add_bookings(database, "small", ["Erode Bus Stand", "Erode Bus Stand"])
        add_bookings(database, "nearly-full", ["Erode Bus Stand"] * 55)

        params = OptimizationParams(decrement_on_assign=decrement)
        result = TransferPlanner(database, params=params).run(SERVICE_DATE, "admin").run.results[0]

        assert result.transferable_passengers == expected

    def test_only_confirmed_bookings_for_the_date_count(self, database):
        add_route(database, "r1", "R1", ["Bhavani"])
        add_route(database, "r2", "R2", ["Bhavani"])
        add_bookings(database, "r1", ["Bhavani"], prefix="today")
        add_bookings(database, "r1", ["Bhavani"] * 3, trip_date="2025-03-15", prefix="tomorrow")
        add_bookings(database, "r1", ["Bhavani"] * 2, status="cancelled", prefix="cancelled")

        outcome = TransferPlanner(database).run(SERVICE_DATE, "admin")

        assert outcome.run.results[0].current_passengers == 1
        assert outcome.route_analysis[0].passenger_count == 1

    def test_inactive_routes_are_ignored(self, database):
        add_route(database, "r1", "R1", ["Bhavani"])
        add_route(database, "retired", "Retired", ["Bhavani"], status="inactive")
        add_bookings(database, "r1", ["Bhavani"])
        add_bookings(database, "retired", ["Bhavani"] * 2)

        outcome = TransferPlanner(database).run(SERVICE_DATE, "admin")

        assert [r.route_id for r in outcome.route_analysis] == ["r1"]
        assert [r.route_id for r in outcome.run.results] == ["r1"]
        assert outcome.run.results[0].transfer_classification == NO_TRANSFER


class TestThreshold:

    def _build(self, database, riders):
        add_route(database, "r1", "R1", ["Bhavani"])
        add_route(database, "r2", "R2", ["Chithode"])
        add_bookings(database, "r1", ["Bhavani"] * riders)
        return TransferPlanner(database).run(SERVICE_DATE, "admin")

    def test_threshold_is_inclusive(self, database):
        outcome = self._build(database, 30)
        assert outcome.has_low_crowd_routes
        assert outcome.route_analysis[0].load_category == "low_crowd"

    def test_above_threshold_has_no_low_crowd_routes(self, database):
        """저이용 노선이 없으면 실행 기록을 남기지 않는다."""
        outcome = self._build(database, 31)

        assert not outcome.has_low_crowd_routes
        assert outcome.run is None
        assert database.count_optimization_runs() == 0

        body = outcome.to_dict()
        assert body["hasLowCrowdRoutes"] is False
        assert body["message"] == "No low-crowd routes found for optimization"
        assert [r["loadCategory"] for r in body["routeAnalysis"]] == ["normal", "no_bookings"]

    def test_empty_catalog(self, database):
        outcome = TransferPlanner(database).run(SERVICE_DATE, "admin")
        assert outcome.run is None
        assert outcome.route_analysis == ()

    def test_custom_threshold(self, database):
        add_route(database, "r1", "R1", ["Bhavani"])
        add_bookings(database, "r1", ["Bhavani"] * 12)
        planner = TransferPlanner(database, params=OptimizationParams(low_crowd_threshold=10))
        assert planner.run(SERVICE_DATE, "admin").run is None


class TestValidationAndFailures:

    @pytest.mark.parametrize("date,requester,field", [
        (None, "admin", "date"),
        ("", "admin", "date"),
        (SERVICE_DATE, None, "requesterId"),
        (SERVICE_DATE, "  ", "requesterId"),
        ("14-03-2025", "admin", "date"),
        ("2025-02-30", "admin", "date"),
    ])
    def test_invalid_input(self, database, date, requester, field):
        with pytest.raises(ValidationError) as exc_info:
            TransferPlanner(database).run(date, requester)
        assert exc_info.value.field == field
        assert exc_info.value.status_code == 400

    def test_catalog_failure_aborts_without_persisting(self, scenario_database, monkeypatch):
        def _raise(status=None):
            raise sqlite3.OperationalError("no such table: routes")

        monkeypatch.setattr(scenario_database, "fetch_routes", _raise)

        with pytest.raises(DependencyError) as exc_info:
            TransferPlanner(scenario_database).run(SERVICE_DATE, "admin")

        assert exc_info.value.status_code == 503
        assert scenario_database.count_optimization_runs() == 0

    def test_deadline_exceeded_is_dependency_error(self, scenario_database):
        """실행 시간 제한을 넘기면 결과를 저장하지 않고 중단한다."""
        ticks = itertools.count(0, 100)
        planner = TransferPlanner(scenario_database, clock=lambda: next(ticks))

        with pytest.raises(DependencyError, match="deadline"):
            planner.run(SERVICE_DATE, "admin")
        assert scenario_database.count_optimization_runs() == 0

    def test_persistence_failure_still_returns_results(self, scenario_database, monkeypatch):
        def _raise(run):
            raise sqlite3.OperationalError("database is locked")

        monkeypatch.setattr(scenario_database, "insert_optimization_run", _raise)

        outcome = TransferPlanner(scenario_database).run(SERVICE_DATE, "admin")

        assert outcome.run.id is None
        assert outcome.to_dict()["optimizationId"] is None
        assert outcome.run.potential_savings == 100

    def test_enhanced_stop_population_failure_is_not_fatal(self, scenario_database, monkeypatch):
        planner = TransferPlanner(scenario_database)

        def _raise():
            raise sqlite3.OperationalError("database is locked")

        monkeypatch.setattr(planner.stop_registry, "populate_possible_stops", _raise)

        outcome = planner.run(SERVICE_DATE, "admin", use_enhanced_stops=True)

        assert outcome.run.use_enhanced_stops is True
        assert outcome.run.enhanced_stops_used == 1


def test_enhanced_stops_populate_before_matching(database):
    """useEnhancedStops=True면 겹치는 노선의 정류장을 먼저 가능 정류장으로 채운다."""
    add_route(database, "small", "Small", ["Kolathur"])
    add_route(database, "east", "East", ["Chithode", "Bhavani"])
    add_route(database, "west", "West", ["Chithode", "Perundurai"])
    add_bookings(database, "small", ["Perundurai"])
    add_bookings(database, "east", ["Chithode"] * 40)
    add_bookings(database, "west", ["Chithode"] * 60)

    plain = TransferPlanner(database).run(SERVICE_DATE, "admin").run
    assert plain.results[0].transfer_classification == NO_TRANSFER

    enhanced = TransferPlanner(database).run(SERVICE_DATE, "admin", use_enhanced_stops=True).run
    transfer = enhanced.results[0].passenger_transfers[0]
    assert transfer.target_route_id == "east"
    assert transfer.stop_category == "possible"
    assert transfer.source_route_name == "West"
    assert enhanced.enhanced_stops_used == 1
    assert database.count_optimization_runs() == 2
