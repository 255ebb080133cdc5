"""
Servicio de Aging de cartera.

Responsabilidades:
- Clasificación de cuentas por días de vencimiento
- Rollup por cliente en 4 ventanas (0-30, 31-60, 61-90, 90+)
- Nivel de riesgo por cliente
- Estadísticas agregadas de cartera
"""

from datetime import date

import pandas as pd

from backoffice.config import RISK_THRESHOLDS, LOW_RISK_LABEL
from backoffice.models.fields import to_date, to_float
from backoffice.models.receivable_models import (
    AgingGroups,
    CustomerAging,
    Receivable,
    ReceivableStats,
)


# ─── Clasificación ───

BUCKET_ORDER = ["current", "days_31_60", "days_61_90", "days_90_plus"]
BUCKET_LABELS = {
    "current": "0-30 días",
    "days_31_60": "31-60 días",
    "days_61_90": "61-90 días",
    "days_90_plus": "90+ días",
}


def days_overdue(due_date, ref_date: date = None) -> int | None:
    """Días transcurridos desde el vencimiento (negativo si aún no vence)."""
    due = to_date(due_date)
    if due is None:
        return None
    return ((ref_date or date.today()) - due).days


def classify_aging(days: int) -> str:
    """Límite superior inclusivo: 30 días exactos siguen en "current"."""
    if days <= 30:
        return "current"
    if days <= 60:
        return "days_31_60"
    if days <= 90:
        return "days_61_90"
    return "days_90_plus"


def matches_aging_filter(due_date, aging: str, ref_date: date = None) -> bool:
    """Filtro de la lista de cartera. A diferencia del rollup, 0-30 excluye lo no vencido."""
    if aging in (None, "", "todos"):
        return True
    diff = days_overdue(due_date, ref_date)
    if diff is None:
        return False
    if aging == "0-30":
        return 0 <= diff <= 30
    if aging == "31-60":
        return 30 < diff <= 60
    if aging == "61-90":
        return 60 < diff <= 90
    if aging == "90+":
        return diff > 90
    return True


# ─── Rollup por cliente ───

def compute_customer_aging(rows: list[dict], ref_date: date = None) -> list[CustomerAging]:
    """
    Agrupa el saldo pendiente por cliente y ventana de antigüedad.

    - Ignora filas con balance <= 0 (pagadas o saldo a favor)
    - La clave de agregación es customer_id
    - Filas sin fecha de vencimiento se tratan como corrientes
    """
    ref = ref_date or date.today()
    customers: dict[str, CustomerAging] = {}

    for item in rows:
        balance = to_float(item.get("balance"))
        if balance <= 0:
            continue

        customer_id = item.get("customer_id")
        if customer_id not in customers:
            customers[customer_id] = CustomerAging(
                customer_id=customer_id,
                customer_name=item.get("customer_name") or "N/A",
                customer_email=item.get("customer_email") or "",
                customer_phone=item.get("customer_phone") or "",
            )

        bucket = customers[customer_id]
        bucket.total += balance

        diff = days_overdue(item.get("due_date"), ref)
        key = classify_aging(diff if diff is not None else 0)
        setattr(bucket, key, getattr(bucket, key) + balance)

    return list(customers.values())


def risk_tier(overdue: float, total: float) -> str:
    """Nivel de riesgo por proporción vencida / total."""
    ratio = overdue / total if total > 0 else 0
    for threshold, label in RISK_THRESHOLDS:
        if ratio >= threshold:
            return label
    return LOW_RISK_LABEL


def aging_totals(buckets: list[CustomerAging]) -> dict[str, float]:
    totals = {key: 0.0 for key in BUCKET_ORDER}
    for bucket in buckets:
        for key in BUCKET_ORDER:
            totals[key] += getattr(bucket, key)
    totals["total"] = sum(totals[key] for key in BUCKET_ORDER)
    return totals


def aging_frame(buckets: list[CustomerAging]) -> pd.DataFrame:
    """DataFrame para la tabla / gráfico del reporte de aging."""
    rows = []
    for b in buckets:
        rows.append({
            "cliente": b.customer_name,
            "email": b.customer_email,
            BUCKET_LABELS["current"]: b.current,
            BUCKET_LABELS["days_31_60"]: b.days_31_60,
            BUCKET_LABELS["days_61_90"]: b.days_61_90,
            BUCKET_LABELS["days_90_plus"]: b.days_90_plus,
            "total": b.total,
            "riesgo": risk_tier(b.overdue, b.total),
        })
    columns = ["cliente", "email", *BUCKET_LABELS.values(), "total", "riesgo"]
    df = pd.DataFrame(rows, columns=columns)
    return df.sort_values("total", ascending=False).reset_index(drop=True)


# ─── Conteos por estado ───

def count_aging_groups(receivables: list[Receivable]) -> AgingGroups:
    """Tarjetas de la vista: corrientes y vencidas por días_vencidos."""
    groups = AgingGroups()
    for r in receivables:
        if r.status == "current":
            groups.current += 1
        elif r.status == "overdue":
            if r.days_overdue <= 30:
                groups.overdue_30 += 1
            elif r.days_overdue <= 60:
                groups.overdue_60 += 1
            elif r.days_overdue <= 90:
                groups.overdue_90 += 1
            else:
                groups.overdue_90_plus += 1
    return groups


# ─── Estadísticas ───

def summarize_receivables(rows: list[dict]) -> ReceivableStats:
    """
    Estadísticas de cartera calculadas en el cliente.

    Pagadas suman por monto original; el resto por saldo pendiente.
    """
    stats = ReceivableStats()
    days_sum = 0

    for item in rows:
        amount = to_float(item.get("amount"))
        balance = to_float(item.get("balance"))

        stats.total_cuentas += 1
        stats.total_amount += amount
        stats.total_balance += balance

        status = item.get("status")
        if status == "current":
            stats.current_amount += balance
        elif status == "overdue":
            stats.overdue_amount += balance
        elif status == "paid":
            stats.paid_amount += amount
        elif status == "partial":
            stats.partial_amount += balance

        days = item.get("days_overdue") or 0
        if days > 0:
            days_sum += days

    if stats.total_cuentas:
        stats.promedio_dias_cobro = days_sum / stats.total_cuentas
    return stats
