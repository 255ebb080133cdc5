"""
Exportación CSV.

Todos los campos de texto se escapan (comillas, comas, saltos de línea), no
solo el nombre del cliente.
"""

import csv
from datetime import date

import pandas as pd

from backoffice.models.receivable_models import Receivable

RECEIVABLE_COLUMNS = [
    ("id", "ID"),
    ("customer_name", "Cliente"),
    ("customer_email", "Email"),
    ("customer_phone", "Teléfono"),
    ("amount", "Monto"),
    ("balance", "Balance"),
    ("due_date", "Fecha Vencimiento"),
    ("status", "Estado"),
    ("days_overdue", "Días Vencidos"),
    ("last_reminder_date", "Último Recordatorio"),
    ("created_at", "Fecha Creación"),
]


def receivables_frame(receivables: list[Receivable]) -> pd.DataFrame:
    rows = []
    for r in receivables:
        row = {header: getattr(r, attr) for attr, header in RECEIVABLE_COLUMNS}
        row["Último Recordatorio"] = r.last_reminder_date or "N/A"
        rows.append(row)
    return pd.DataFrame(rows, columns=[header for _, header in RECEIVABLE_COLUMNS])


def to_csv(df: pd.DataFrame) -> str:
    # QUOTE_NONNUMERIC: todo texto va entre comillas y las comillas internas se duplican
    return df.to_csv(index=False, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")


def receivables_csv(receivables: list[Receivable]) -> str:
    return to_csv(receivables_frame(receivables))


def export_filename(prefix: str = "cuentas-por-cobrar", ref_date: date = None) -> str:
    return f"{prefix}-{(ref_date or date.today()).isoformat()}.csv"
