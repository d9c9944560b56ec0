"""
pytest 설정 파일
"""
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# 프로젝트 루트를 sys.path에 추가
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

SERVICE_DATE = "2025-03-14"


@pytest.fixture
def database(tmp_path):
    """빈 스키마의 임시 SQLite 데이터베이스"""
    from src.database import TransportDatabase

    db = TransportDatabase(tmp_path / "routewise.db")
    db.init_schema()
    return db


def add_route(db, route_id, name, stops=(), capacity=None, status="active"):
    db.insert_routes([{
        "id": route_id,
        "route_name": name,
        "route_number": route_id.upper(),
        "status": status,
        "capacity": capacity,
    }])
    db.insert_route_stops([
        {"route_id": route_id, "stop_name": s, "stop_time": f"07:{10 + i:02d}", "sequence_order": i + 1}
        for i, s in enumerate(stops)
    ])


def add_bookings(db, route_id, boarding_stops, trip_date=SERVICE_DATE, status="confirmed", prefix=None):
    prefix = prefix or route_id
    students = [
        {"id": f"{prefix}-s{i}", "student_name": f"Student {prefix}{i}", "roll_number": f"{prefix.upper()}{i:03d}"}
        for i in range(len(boarding_stops))
    ]
    db.insert_students(students)
    db.insert_bookings([
        {"student_id": s["id"], "route_id": route_id, "trip_date": trip_date,
         "boarding_stop": stop, "status": status}
        for s, stop in zip(students, boarding_stops)
    ])


@pytest.fixture
def scenario_database(database):
    """
    Route A: 3 passengers (Main Stop / Erode Bus Stand / Unknown Corner)
    Route B: capacity 60, 55 riders, regular "Erode Bus Stand",
             possible "Main Junction" borrowed from route C
    Route C: no bookings (spare capacity), source of the possible stop
    """
    from src.stop_registry import StopRegistry

    add_route(database, "route-a", "Route A", ["Gobi Road", "Perundurai"])
    add_route(database, "route-b", "Route B", ["Erode Bus Stand", "Chithode"], capacity=60)
    add_route(database, "route-c", "Route C", ["Main Junction", "Bhavani"])

    add_bookings(database, "route-a", ["Main Stop", "Erode Bus Stand", "Unknown Corner"])
    add_bookings(database, "route-b", ["Chithode"] * 55)

    StopRegistry(database).add_possible_stops("route-b", [
        {"stop_name": "Main Junction", "stop_time": "07:25", "sequence_order": 3,
         "source_route_id": "route-c"},
    ])
    return database


@pytest.fixture
def test_client(tmp_path, monkeypatch):
    """임시 DB를 사용하는 FastAPI 테스트 클라이언트"""
    monkeypatch.setenv("ROUTEWISE_DB_PATH", str(tmp_path / "api.db"))
    monkeypatch.delenv("ROUTEWISE_API_KEY", raising=False)
    from api.app import app
    with TestClient(app) as client:
        yield client


@pytest.fixture
def api_database(test_client):
    """test_client가 사용하는 데이터베이스"""
    from api.dependencies import registry
    return registry.get_database()
