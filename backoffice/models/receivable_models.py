"""
Modelos de cuentas por cobrar (cartera).
"""

from dataclasses import dataclass, field
from typing import Optional

from backoffice.models.fields import to_float, to_int


# ─── Cuenta por cobrar ───

@dataclass
class Receivable:
    """Cuenta por cobrar. Estado y días vencidos los calcula la base de datos."""
    id: str
    customer_id: str
    amount: float = 0.0
    balance: float = 0.0
    due_date: Optional[str] = None
    status: str = "current"  # current | overdue | partial | paid
    days_overdue: int = 0
    organization_id: Optional[int] = None
    invoice_id: Optional[str] = None
    sale_id: Optional[str] = None
    last_reminder_date: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    customer_name: str = ""
    customer_email: str = ""
    customer_phone: str = ""

    @classmethod
    def from_row(cls, row: dict, default_name: str = "") -> "Receivable":
        return cls(
            id=row["id"],
            customer_id=row.get("customer_id"),
            amount=to_float(row.get("amount")),
            balance=to_float(row.get("balance")),
            due_date=row.get("due_date"),
            status=row.get("status") or "current",
            days_overdue=to_int(row.get("days_overdue")),
            organization_id=row.get("organization_id"),
            invoice_id=row.get("invoice_id"),
            sale_id=row.get("sale_id"),
            last_reminder_date=row.get("last_reminder_date"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
            customer_name=row.get("customer_name") or default_name,
            customer_email=row.get("customer_email") or "",
            customer_phone=row.get("customer_phone") or "",
        )


@dataclass
class ReceivableFilters:
    """Filtros de la vista de cartera. "todos" desactiva el filtro."""
    search: Optional[str] = None
    status: str = "todos"
    aging: str = "todos"  # todos | 0-30 | 31-60 | 61-90 | 90+
    customer_id: Optional[str] = None
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    page_size: int = 20
    page_number: int = 1


@dataclass
class PaginatedResult:
    data: list = field(default_factory=list)
    total_count: int = 0
    page_size: int = 0
    page_number: int = 1
    total_pages: int = 0


# ─── Aging ───

@dataclass
class CustomerAging:
    """Saldo pendiente de un cliente repartido en ventanas de antigüedad."""
    customer_id: str
    customer_name: str = "N/A"
    customer_email: str = ""
    customer_phone: str = ""
    current: float = 0.0
    days_31_60: float = 0.0
    days_61_90: float = 0.0
    days_90_plus: float = 0.0
    total: float = 0.0

    @property
    def overdue(self) -> float:
        return self.days_31_60 + self.days_61_90 + self.days_90_plus


@dataclass
class AgingGroups:
    """Conteo de cuentas por estado / ventana (tarjetas de la vista)."""
    current: int = 0
    overdue_30: int = 0
    overdue_60: int = 0
    overdue_90: int = 0
    overdue_90_plus: int = 0


# ─── Recordatorios y abonos ───

@dataclass
class Reminder:
    id: str
    customer_id: str
    customer_name: str = "N/A"
    customer_email: str = ""
    amount: float = 0.0
    due_date: Optional[str] = None
    days_overdue: int = 0
    last_reminder_date: Optional[str] = None
    next_reminder_date: Optional[str] = None


@dataclass
class PaymentInput:
    """Abono a una cuenta por cobrar."""
    amount: float
    payment_method: str
    payment_date: str
    reference: Optional[str] = None


# ─── Estadísticas ───

@dataclass
class ReceivableStats:
    total_cuentas: int = 0
    total_amount: float = 0.0
    total_balance: float = 0.0
    current_amount: float = 0.0
    overdue_amount: float = 0.0
    paid_amount: float = 0.0
    partial_amount: float = 0.0
    promedio_dias_cobro: float = 0.0


@dataclass
class CustomerBalance:
    customer_id: str
    balance: float = 0.0
    days_overdue: int = 0
    status: Optional[str] = None
    due_date: Optional[str] = None
