"""Common utilities for Routewise."""
import re
from datetime import date, datetime

import pandas as pd


def normalize_stop_name(name):
    """Normalize free-text stop names for comparison."""
    if name is None or pd.isna(name):
        return ""
    name = str(name).lower()
    name = re.sub(r"\s+", " ", name)
    return name.strip()


def significant_words(name, min_length=4, ignore=("stop",)):
    """Words of a normalized stop name that are long enough to carry meaning."""
    return {
        w for w in normalize_stop_name(name).split(" ")
        if len(w) >= min_length and w not in ignore
    }


def parse_service_date(value) -> date:
    """Parse a YYYY-MM-DD service date. Raises ValueError on malformed input."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(str(value).strip(), "%Y-%m-%d").date()
