from datetime import date, datetime
from typing import Any


def parse_datetime(value: Any) -> datetime:
    """Parse ISO 8601 datetime or date string; dates become midnight."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
        except ValueError:
            raise ValueError(f"Invalid datetime format: {value}")
    raise ValueError(f"Expected datetime, got {type(value)}")
