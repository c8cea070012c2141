"""
Shared conversions for API request/response normalization.
Keys go out camelCase and come back in snake_case; money goes out as a
two-decimal string so no float ever carries an amount.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic.alias_generators import to_camel, to_snake


def to_camel_key(s: str) -> str:
    """Convert a single snake_case key to camelCase (first letter lower)."""
    return to_camel(s)


def to_snake_key(s: str) -> str:
    """Convert a single camelCase key to snake_case."""
    return to_snake(s)


def dict_keys_to_camel(obj: Any) -> Any:
    """Recursively convert dict keys from snake_case to camelCase for API responses."""
    if isinstance(obj, dict):
        return {to_camel_key(k): dict_keys_to_camel(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [dict_keys_to_camel(x) for x in obj]
    return obj


def dict_keys_to_snake(obj: Any) -> Any:
    """Recursively convert dict keys from camelCase to snake_case (client-side parsing)."""
    if isinstance(obj, dict):
        return {to_snake_key(k): dict_keys_to_snake(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [dict_keys_to_snake(x) for x in obj]
    return obj


def iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


def money(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(Decimal(str(value)).quantize(Decimal("0.01")))
