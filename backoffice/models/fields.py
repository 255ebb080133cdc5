"""
Normalización de valores devueltos por PostgREST.
Las columnas numeric llegan como string ("1500.00"); se convierten a float.
"""

from datetime import date


def to_float(value, default: float = 0.0) -> float:
    if value in (None, ""):
        return default
    return float(value)


def to_float_or_none(value) -> float | None:
    if value in (None, ""):
        return None
    return float(value)


def to_int(value, default: int = 0) -> int:
    if value in (None, ""):
        return default
    return int(float(value))


def to_date(value) -> date | None:
    """Toma la parte de fecha de un ISO string ("2024-05-01T10:00:00Z" → 2024-05-01)."""
    if not value:
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except (ValueError, TypeError):
        return None
