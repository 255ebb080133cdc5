"""
Servicio de Mesas.

Responsabilidades:
- Sesión principal de una mesa (la abierta más recientemente)
- Detección de sesiones duplicadas
- Consolidación de mesas combinadas
- Totales de venta y pre-cuenta
- Transiciones optimistas de estado en la vista
"""

from dataclasses import replace
from datetime import datetime, timezone

from backoffice.models.pos_models import (
    PreCuenta,
    RestaurantTable,
    SaleItem,
    TableSession,
    TableWithSession,
)

TABLE_STATES = ("free", "occupied", "reserved")


def _opened_key(session: TableSession) -> datetime:
    if not session.opened_at:
        return datetime.min
    try:
        opened = datetime.fromisoformat(session.opened_at.replace("Z", "+00:00"))
    except ValueError:
        return datetime.min
    # Todo se compara en UTC naive; los valores sin offset ya se asumen UTC
    if opened.tzinfo is not None:
        opened = opened.astimezone(timezone.utc).replace(tzinfo=None)
    return opened


def sort_sessions(sessions: list[TableSession]) -> list[TableSession]:
    """Sesiones de la más reciente a la más antigua por opened_at."""
    return sorted(sessions, key=_opened_key, reverse=True)


def pick_main_session(sessions: list[TableSession]) -> TableSession | None:
    ordered = sort_sessions(sessions)
    return ordered[0] if ordered else None


def duplicate_sessions(sessions: list[TableSession]) -> list[TableSession]:
    """Todas menos la más reciente: las que la limpieza defensiva debe cerrar."""
    return sort_sessions(sessions)[1:]


# ─── Consolidación ───

def consolidate_tables(
    tables: list[RestaurantTable],
    sessions: list[TableSession],
    items_by_sale: dict[str, int],
) -> list[TableWithSession]:
    """
    Combina mesas con sus sesiones activas.

    - Los comensales vienen solo de la sesión principal (no se suman)
    - Los items se suman sobre todas las sesiones de la mesa (mesas combinadas)
    """
    by_table: dict[str, list[TableSession]] = {}
    for s in sessions:
        by_table.setdefault(s.restaurant_table_id, []).append(s)

    result = []
    for table in tables:
        table_sessions = by_table.get(table.id, [])
        if not table_sessions:
            result.append(TableWithSession(table=table))
            continue

        item_count = sum(items_by_sale.get(s.sale_id, 0) for s in table_sessions if s.sale_id)
        result.append(TableWithSession(
            table=table,
            session=pick_main_session(table_sessions),
            item_count=item_count,
            session_count=len(table_sessions),
        ))
    return result


def filter_tables(
    tables: list[TableWithSession],
    zone: str = "all",
    occupied_only: bool = False,
) -> list[TableWithSession]:
    result = []
    for t in tables:
        if zone != "all" and t.table.zone != zone:
            continue
        if occupied_only and t.table.state != "occupied":
            continue
        result.append(t)
    return result


# ─── Totales ───

def sale_totals(items) -> dict[str, float]:
    """Totales de una venta: total = subtotal + impuestos − descuentos."""
    subtotal = sum(float(_value(i, "total")) for i in items)
    tax_total = sum(float(_value(i, "tax_amount")) for i in items)
    discount_total = sum(float(_value(i, "discount_amount")) for i in items)
    return {
        "subtotal": subtotal,
        "tax_total": tax_total,
        "discount_total": discount_total,
        "total": subtotal + tax_total - discount_total,
    }


def _value(item, key: str):
    if isinstance(item, dict):
        return item.get(key) or 0
    return getattr(item, key) or 0


def compute_pre_cuenta(items: list[SaleItem]) -> PreCuenta:
    totals = sale_totals(items)
    return PreCuenta(items=list(items), **totals)


# ─── Estado optimista ───

def apply_optimistic_state(
    tables: list[RestaurantTable],
    table_id: str,
    state: str,
) -> tuple[list[RestaurantTable], RestaurantTable | None]:
    """
    Aplica el nuevo estado en la vista antes de confirmar con la base.

    Retorna la nueva lista y la mesa previa (para `rollback` si la llamada falla).
    """
    if state not in TABLE_STATES:
        raise ValueError(f"Estado de mesa inválido: {state}")
    previous = None
    updated = []
    for t in tables:
        if t.id == table_id:
            previous = t
            updated.append(replace(t, state=state))
        else:
            updated.append(t)
    return updated, previous


def rollback(tables: list[RestaurantTable], previous: RestaurantTable | None) -> list[RestaurantTable]:
    if previous is None:
        return list(tables)
    return [previous if t.id == previous.id else t for t in tables]
