# -*- coding: utf-8 -*-
"""
Catalog CSV Loader
==================
Imports routes / route stops / students / bookings CSV exports into the
Routewise SQLite database.

Expected files in --csv-dir (any may be missing):
    routes.csv       id, route_name, route_number, status, capacity, start_location, end_location
    route_stops.csv  route_id, stop_name, stop_time, sequence_order, latitude, longitude, is_major_stop
    students.csv     id, student_name, roll_number
    bookings.csv     student_id, route_id, trip_date, boarding_stop, seat_number, status

Usage:
    python scripts/load_catalog.py --csv-dir data/catalog [--db data/routewise.db]
"""
import argparse
import sys
from pathlib import Path

import numpy as np
import pandas as pd

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.config import database_path
from src.database import TransportDatabase
from src.utils import normalize_stop_name

REQUIRED_COLUMNS = {
    "routes.csv": ["id", "route_name"],
    "route_stops.csv": ["route_id", "stop_name"],
    "students.csv": ["id"],
    "bookings.csv": ["student_id", "route_id", "trip_date"],
}


def read_table(csv_dir: Path, filename: str):
    path = csv_dir / filename
    if not path.exists():
        print(f"  {filename}: not found (skipping)")
        return None
    df = pd.read_csv(path, encoding="utf-8-sig", dtype=str)
    missing = [c for c in REQUIRED_COLUMNS[filename] if c not in df.columns]
    if missing:
        raise ValueError(f"{filename}: missing columns {missing}")
    df = df.replace({np.nan: None})
    print(f"  {filename}: {len(df):,} rows")
    return df


def clean_stops(df: pd.DataFrame) -> pd.DataFrame:
    """Drop blank stop names and duplicate (route, stop) rows."""
    df = df[df["stop_name"].notna()].copy()
    df["stop_name"] = df["stop_name"].str.strip()
    df = df[df["stop_name"] != ""]
    df["_key"] = df["stop_name"].apply(normalize_stop_name)
    df = df.drop_duplicates(subset=["route_id", "_key"]).drop(columns="_key")
    if "sequence_order" in df.columns:
        df["sequence_order"] = pd.to_numeric(df["sequence_order"], errors="coerce").fillna(0).astype(int)
    for col in ("latitude", "longitude"):
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce")
    if "is_major_stop" in df.columns:
        df["is_major_stop"] = df["is_major_stop"].astype(str).str.lower().isin(["1", "true", "yes"])
    return df.replace({np.nan: None})


def load_catalog(csv_dir: Path, db: TransportDatabase) -> dict:
    counts = {}

    routes = read_table(csv_dir, "routes.csv")
    if routes is not None:
        if "capacity" in routes.columns:
            capacity = pd.to_numeric(routes["capacity"], errors="coerce")
            routes["capacity"] = [None if pd.isna(v) else int(v) for v in capacity]
        counts["routes"] = db.insert_routes(routes.to_dict("records"))

    stops = read_table(csv_dir, "route_stops.csv")
    if stops is not None:
        counts["route_stops"] = db.insert_route_stops(clean_stops(stops).to_dict("records"))

    students = read_table(csv_dir, "students.csv")
    if students is not None:
        counts["students"] = db.insert_students(students.to_dict("records"))

    bookings = read_table(csv_dir, "bookings.csv")
    if bookings is not None:
        bookings["trip_date"] = pd.to_datetime(bookings["trip_date"]).dt.strftime("%Y-%m-%d")
        counts["bookings"] = db.insert_bookings(bookings.to_dict("records"))

    return counts


def main():
    parser = argparse.ArgumentParser(description="노선/정류장/예약 CSV를 Routewise DB로 불러오기")
    parser.add_argument("--csv-dir", required=True, help="CSV 파일 디렉토리")
    parser.add_argument("--db", default=None, help="SQLite 경로 (기본: ROUTEWISE_DB_PATH)")
    args = parser.parse_args()

    db = TransportDatabase(args.db or database_path())
    db.init_schema()

    print("=" * 60)
    print(f"Loading catalog from {args.csv_dir} → {db.db_path}")
    print("=" * 60)
    counts = load_catalog(Path(args.csv_dir), db)
    for table, n in counts.items():
        print(f"  [OK] {table}: {n:,} rows written")


if __name__ == "__main__":
    main()
