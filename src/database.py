# -*- coding: utf-8 -*-
"""
SQLite transport store
======================
Route catalog, route stop lists, possible stops, students/bookings and
optimization run history. One connection per operation; the schema is
created once per database path.
"""
import json
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

import pandas as pd

from src.models import OptimizationRun, POSSIBLE, REGULAR, Route, Stop

SCHEMA = """
CREATE TABLE IF NOT EXISTS routes (
    id TEXT PRIMARY KEY,
    route_name TEXT NOT NULL,
    route_number TEXT,
    status TEXT NOT NULL DEFAULT 'active',
    capacity INTEGER,
    start_location TEXT,
    end_location TEXT
);
CREATE TABLE IF NOT EXISTS route_stops (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    route_id TEXT NOT NULL REFERENCES routes(id) ON DELETE CASCADE,
    stop_name TEXT NOT NULL,
    stop_time TEXT,
    sequence_order INTEGER NOT NULL DEFAULT 0,
    latitude REAL,
    longitude REAL,
    is_major_stop INTEGER NOT NULL DEFAULT 0,
    UNIQUE (route_id, stop_name)
);
CREATE TABLE IF NOT EXISTS route_possible_stops (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    route_id TEXT NOT NULL REFERENCES routes(id) ON DELETE CASCADE,
    stop_name TEXT NOT NULL,
    stop_time TEXT NOT NULL,
    sequence_order INTEGER NOT NULL DEFAULT 0,
    source_route_id TEXT NOT NULL REFERENCES routes(id) ON DELETE CASCADE,
    latitude REAL,
    longitude REAL,
    is_major_stop INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    UNIQUE (route_id, stop_name, source_route_id)
);
CREATE TABLE IF NOT EXISTS students (
    id TEXT PRIMARY KEY,
    student_name TEXT,
    roll_number TEXT
);
CREATE TABLE IF NOT EXISTS bookings (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    student_id TEXT NOT NULL REFERENCES students(id),
    route_id TEXT NOT NULL REFERENCES routes(id),
    trip_date TEXT NOT NULL,
    boarding_stop TEXT,
    seat_number TEXT,
    status TEXT NOT NULL DEFAULT 'confirmed',
    UNIQUE (student_id, route_id, trip_date)
);
CREATE TABLE IF NOT EXISTS route_optimizations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    optimization_date TEXT NOT NULL,
    created_by TEXT NOT NULL,
    created_at TEXT NOT NULL,
    total_low_crowd_buses INTEGER NOT NULL,
    total_passengers_affected INTEGER NOT NULL,
    full_transfers INTEGER NOT NULL,
    partial_transfers INTEGER NOT NULL,
    no_transfers INTEGER NOT NULL,
    potential_savings INTEGER NOT NULL,
    enhanced_stops_used INTEGER NOT NULL DEFAULT 0,
    use_enhanced_stops INTEGER NOT NULL DEFAULT 0,
    results_json TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_route_stops_route ON route_stops(route_id);
CREATE INDEX IF NOT EXISTS idx_possible_stops_route ON route_possible_stops(route_id);
CREATE INDEX IF NOT EXISTS idx_bookings_trip_date ON bookings(trip_date);
CREATE INDEX IF NOT EXISTS idx_optimizations_date ON route_optimizations(optimization_date);
"""

BOOKING_COLUMNS = [
    "booking_id", "student_id", "route_id", "trip_date", "boarding_stop",
    "seat_number", "status", "student_name", "roll_number",
]


def is_unique_violation(exc: sqlite3.IntegrityError) -> bool:
    return "UNIQUE constraint failed" in str(exc)


def is_foreign_key_violation(exc: sqlite3.IntegrityError) -> bool:
    return "FOREIGN KEY constraint failed" in str(exc)


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _route_from_row(row: sqlite3.Row) -> Route:
    return Route(
        id=row["id"],
        route_name=row["route_name"],
        route_number=row["route_number"],
        status=row["status"],
        capacity=row["capacity"],
        start_location=row["start_location"],
        end_location=row["end_location"],
    )


def _stop_from_row(row: sqlite3.Row, category: str) -> Stop:
    keys = row.keys()
    return Stop(
        id=row["id"],
        route_id=row["route_id"],
        stop_name=row["stop_name"],
        stop_time=row["stop_time"],
        sequence_order=row["sequence_order"] or 0,
        category=category,
        source_route_id=row["source_route_id"] if "source_route_id" in keys else None,
        source_route_name=row["source_route_name"] if "source_route_name" in keys else None,
        latitude=row["latitude"],
        longitude=row["longitude"],
        is_major_stop=bool(row["is_major_stop"]),
    )


class TransportDatabase:
    def __init__(self, db_path):
        self.db_path = Path(db_path)
        self._initialized = False

    def init_schema(self):
        """Create tables and indexes once."""
        if self._initialized:
            return
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.db_path))
        try:
            conn.executescript(SCHEMA)
            conn.commit()
        finally:
            conn.close()
        self._initialized = True

    def connect(self) -> sqlite3.Connection:
        self.init_schema()
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    # ----- catalog loading (seed / import) -----------------------------------

    def insert_routes(self, rows: Iterable[Dict[str, Any]]) -> int:
        payload = [
            (
                str(r["id"]), r["route_name"], r.get("route_number"),
                r.get("status") or "active", r.get("capacity"),
                r.get("start_location"), r.get("end_location"),
            )
            for r in rows
        ]
        conn = self.connect()
        try:
            with conn:
                conn.executemany(
                    "INSERT INTO routes (id, route_name, route_number, status, capacity, "
                    "start_location, end_location) VALUES (?, ?, ?, ?, ?, ?, ?) "
                    "ON CONFLICT(id) DO UPDATE SET route_name = excluded.route_name, "
                    "route_number = excluded.route_number, status = excluded.status, "
                    "capacity = excluded.capacity, start_location = excluded.start_location, "
                    "end_location = excluded.end_location",
                    payload,
                )
            return len(payload)
        finally:
            conn.close()

    def insert_route_stops(self, rows: Iterable[Dict[str, Any]]) -> int:
        payload = [
            (
                str(r["route_id"]), r["stop_name"], r.get("stop_time"),
                int(r.get("sequence_order") or 0), r.get("latitude"), r.get("longitude"),
                1 if r.get("is_major_stop") else 0,
            )
            for r in rows
        ]
        conn = self.connect()
        try:
            with conn:
                conn.executemany(
                    "INSERT INTO route_stops (route_id, stop_name, stop_time, sequence_order, "
                    "latitude, longitude, is_major_stop) VALUES (?, ?, ?, ?, ?, ?, ?) "
                    "ON CONFLICT(route_id, stop_name) DO UPDATE SET stop_time = excluded.stop_time, "
                    "sequence_order = excluded.sequence_order, latitude = excluded.latitude, "
                    "longitude = excluded.longitude, is_major_stop = excluded.is_major_stop",
                    payload,
                )
            return len(payload)
        finally:
            conn.close()

    def insert_students(self, rows: Iterable[Dict[str, Any]]) -> int:
        payload = [(str(r["id"]), r.get("student_name"), r.get("roll_number")) for r in rows]
        conn = self.connect()
        try:
            with conn:
                conn.executemany(
                    "INSERT INTO students (id, student_name, roll_number) VALUES (?, ?, ?) "
                    "ON CONFLICT(id) DO UPDATE SET student_name = excluded.student_name, "
                    "roll_number = excluded.roll_number",
                    payload,
                )
            return len(payload)
        finally:
            conn.close()

    def insert_bookings(self, rows: Iterable[Dict[str, Any]]) -> int:
        payload = [
            (
                str(r["student_id"]), str(r["route_id"]), str(r["trip_date"]),
                r.get("boarding_stop"), r.get("seat_number"), r.get("status") or "confirmed",
            )
            for r in rows
        ]
        conn = self.connect()
        try:
            with conn:
                conn.executemany(
                    "INSERT INTO bookings (student_id, route_id, trip_date, boarding_stop, "
                    "seat_number, status) VALUES (?, ?, ?, ?, ?, ?) "
                    "ON CONFLICT(student_id, route_id, trip_date) DO UPDATE SET "
                    "boarding_stop = excluded.boarding_stop, seat_number = excluded.seat_number, "
                    "status = excluded.status",
                    payload,
                )
            return len(payload)
        finally:
            conn.close()

    # ----- catalog queries ---------------------------------------------------

    def fetch_routes(self, status: Optional[str] = None) -> List[Route]:
        """Routes in catalog order (insertion order)."""
        conn = self.connect()
        try:
            if status:
                rows = conn.execute(
                    "SELECT * FROM routes WHERE status = ? ORDER BY rowid", (status,)
                ).fetchall()
            else:
                rows = conn.execute("SELECT * FROM routes ORDER BY rowid").fetchall()
            return [_route_from_row(r) for r in rows]
        finally:
            conn.close()

    def get_route(self, route_id: str) -> Optional[Route]:
        conn = self.connect()
        try:
            row = conn.execute("SELECT * FROM routes WHERE id = ?", (route_id,)).fetchone()
            return _route_from_row(row) if row else None
        finally:
            conn.close()

    def fetch_bookings_frame(self, trip_date: str, status: str = "confirmed") -> pd.DataFrame:
        """Bookings for one date joined with student details, in booking order."""
        conn = self.connect()
        try:
            frame = pd.read_sql_query(
                """
                SELECT b.id AS booking_id, b.student_id, b.route_id, b.trip_date,
                       b.boarding_stop, b.seat_number, b.status,
                       s.student_name, s.roll_number
                FROM bookings b
                LEFT JOIN students s ON s.id = b.student_id
                WHERE b.trip_date = ? AND b.status = ?
                ORDER BY b.id
                """,
                conn,
                params=(trip_date, status),
            )
        finally:
            conn.close()
        if frame.empty:
            return pd.DataFrame(columns=BOOKING_COLUMNS)
        return frame

    def fetch_regular_stops(self, route_id: str) -> List[Stop]:
        conn = self.connect()
        try:
            rows = conn.execute(
                "SELECT * FROM route_stops WHERE route_id = ? ORDER BY sequence_order, id",
                (route_id,),
            ).fetchall()
            return [_stop_from_row(r, REGULAR) for r in rows]
        finally:
            conn.close()

    def fetch_possible_stops(self, route_id: str) -> List[Stop]:
        conn = self.connect()
        try:
            rows = conn.execute(
                """
                SELECT p.*, src.route_name AS source_route_name
                FROM route_possible_stops p
                LEFT JOIN routes src ON src.id = p.source_route_id
                WHERE p.route_id = ?
                ORDER BY p.sequence_order, p.id
                """,
                (route_id,),
            ).fetchall()
            return [_stop_from_row(r, POSSIBLE) for r in rows]
        finally:
            conn.close()

    def search_regular_stops(self, query: str, exclude_route_id: Optional[str],
                             limit: int) -> List[Dict[str, Any]]:
        sql = (
            "SELECT st.id, st.stop_name, st.stop_time, st.sequence_order, st.route_id, "
            "r.route_name, r.route_number "
            "FROM route_stops st LEFT JOIN routes r ON r.id = st.route_id WHERE 1 = 1"
        )
        args: List[Any] = []
        if exclude_route_id:
            sql += " AND st.route_id != ?"
            args.append(exclude_route_id)
        if query:
            sql += " AND LOWER(st.stop_name) LIKE ? ESCAPE '\\'"
            args.append(f"%{_escape_like(query.lower())}%")
        sql += " ORDER BY st.stop_name, st.id LIMIT ?"
        args.append(limit)

        conn = self.connect()
        try:
            return [dict(r) for r in conn.execute(sql, args).fetchall()]
        finally:
            conn.close()

    # ----- possible stops ----------------------------------------------------

    def find_existing_possible_stops(self, route_id: str) -> Set[Tuple[str, str]]:
        """All (stop_name, source_route_id) pairs already on a route, in one query."""
        conn = self.connect()
        try:
            rows = conn.execute(
                "SELECT stop_name, source_route_id FROM route_possible_stops WHERE route_id = ?",
                (route_id,),
            ).fetchall()
            return {(r["stop_name"], r["source_route_id"]) for r in rows}
        finally:
            conn.close()

    def insert_possible_stops(self, route_id: str, rows: List[Dict[str, Any]]) -> List[Stop]:
        """Insert a batch in a single transaction. IntegrityError propagates."""
        created_at = datetime.now().isoformat()
        conn = self.connect()
        try:
            new_ids = []
            with conn:
                for r in rows:
                    cursor = conn.execute(
                        """
                        INSERT INTO route_possible_stops
                            (route_id, stop_name, stop_time, sequence_order, source_route_id,
                             latitude, longitude, is_major_stop, created_at)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            route_id, r["stop_name"], r["stop_time"], r["sequence_order"],
                            r["source_route_id"], r.get("latitude"), r.get("longitude"),
                            1 if r.get("is_major_stop") else 0, created_at,
                        ),
                    )
                    new_ids.append(cursor.lastrowid)
            if not new_ids:
                return []
            placeholders = ", ".join("?" for _ in new_ids)
            inserted = conn.execute(
                f"""
                SELECT p.*, src.route_name AS source_route_name
                FROM route_possible_stops p
                LEFT JOIN routes src ON src.id = p.source_route_id
                WHERE p.id IN ({placeholders})
                ORDER BY p.id
                """,
                new_ids,
            ).fetchall()
            return [_stop_from_row(r, POSSIBLE) for r in inserted]
        finally:
            conn.close()

    def delete_possible_stop(self, route_id: str, stop_id: int) -> int:
        conn = self.connect()
        try:
            with conn:
                cursor = conn.execute(
                    "DELETE FROM route_possible_stops WHERE id = ? AND route_id = ?",
                    (stop_id, route_id),
                )
            return cursor.rowcount
        finally:
            conn.close()

    # ----- optimization history ----------------------------------------------

    def insert_optimization_run(self, run: OptimizationRun) -> Tuple[int, str]:
        created_at = run.created_at or datetime.now().isoformat()
        results_json = json.dumps([r.to_dict() for r in run.results], ensure_ascii=False)
        conn = self.connect()
        try:
            with conn:
                cursor = conn.execute(
                    """
                    INSERT INTO route_optimizations
                        (optimization_date, created_by, created_at, total_low_crowd_buses,
                         total_passengers_affected, full_transfers, partial_transfers,
                         no_transfers, potential_savings, enhanced_stops_used,
                         use_enhanced_stops, results_json)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        run.optimization_date, run.created_by, created_at,
                        run.total_low_crowd_buses, run.total_passengers_affected,
                        run.full_transfers, run.partial_transfers, run.no_transfers,
                        run.potential_savings, run.enhanced_stops_used,
                        1 if run.use_enhanced_stops else 0, results_json,
                    ),
                )
            return cursor.lastrowid, created_at
        finally:
            conn.close()

    def count_optimization_runs(self) -> int:
        conn = self.connect()
        try:
            return conn.execute("SELECT COUNT(*) FROM route_optimizations").fetchone()[0]
        finally:
            conn.close()

    def fetch_optimization_runs(self, limit: int = 20) -> List[Dict[str, Any]]:
        """Newest first, without the per-route detail."""
        conn = self.connect()
        try:
            rows = conn.execute(
                "SELECT * FROM route_optimizations ORDER BY id DESC LIMIT ?", (limit,)
            ).fetchall()
            return [_run_row_to_dict(r, include_results=False) for r in rows]
        finally:
            conn.close()

    def get_optimization_run(self, optimization_id: int) -> Optional[Dict[str, Any]]:
        conn = self.connect()
        try:
            row = conn.execute(
                "SELECT * FROM route_optimizations WHERE id = ?", (optimization_id,)
            ).fetchone()
            return _run_row_to_dict(row, include_results=True) if row else None
        finally:
            conn.close()


def _run_row_to_dict(row: sqlite3.Row, include_results: bool) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "optimizationId": row["id"],
        "optimizationDate": row["optimization_date"],
        "createdBy": row["created_by"],
        "createdAt": row["created_at"],
        "useEnhancedStops": bool(row["use_enhanced_stops"]),
        "summary": {
            "totalLowCrowdBuses": row["total_low_crowd_buses"],
            "totalPassengersAffected": row["total_passengers_affected"],
            "fullTransfers": row["full_transfers"],
            "partialTransfers": row["partial_transfers"],
            "noTransfers": row["no_transfers"],
            "potentialSavings": row["potential_savings"],
            "enhancedStopsUsed": row["enhanced_stops_used"],
        },
    }
    if include_results:
        body["lowCrowdRoutes"] = json.loads(row["results_json"])
    return body
