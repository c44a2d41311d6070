# utils/jsonSafe.py
from datetime import date, datetime
from decimal import Decimal
from typing import Any

def jsonSafe(value: Any) -> Any:
    """
    Recursively convert datetimes/dates into ISO strings and Postgres numerics
    into ints so auction payloads are JSON serializable.
    """
    if isinstance(value, datetime):
        # keep timezone info if present
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: jsonSafe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [jsonSafe(v) for v in value]
    return value
