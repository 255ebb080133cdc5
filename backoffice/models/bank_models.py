"""
Modelos de bancos y conciliación bancaria.
"""

from dataclasses import dataclass
from typing import Optional

from backoffice.models.fields import to_float, to_float_or_none


# ─── Cuentas bancarias ───

@dataclass
class BankAccount:
    id: int
    organization_id: int
    name: str
    balance: float = 0.0
    branch_id: Optional[int] = None
    account_number: Optional[str] = None
    bank_name: Optional[str] = None
    account_type: Optional[str] = None
    currency: Optional[str] = None
    initial_balance: Optional[float] = None
    is_active: bool = True
    created_by: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict) -> "BankAccount":
        return cls(
            id=row["id"],
            organization_id=row.get("organization_id"),
            name=row.get("name") or "",
            balance=to_float(row.get("balance")),
            branch_id=row.get("branch_id"),
            account_number=row.get("account_number"),
            bank_name=row.get("bank_name"),
            account_type=row.get("account_type"),
            currency=row.get("currency"),
            initial_balance=to_float_or_none(row.get("initial_balance")),
            is_active=bool(row.get("is_active", True)),
            created_by=row.get("created_by"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )


# ─── Transacciones ───

@dataclass
class BankTransaction:
    """Movimiento bancario. `amount` es positivo; el signo lo da `transaction_type`."""
    id: int
    bank_account_id: int
    amount: float
    transaction_type: str  # debit | credit
    trans_date: Optional[str] = None
    organization_id: Optional[int] = None
    description: Optional[str] = None
    reference: Optional[str] = None
    matched_journal_line_id: Optional[int] = None
    status: Optional[str] = None  # pending | matched
    import_source: Optional[str] = None
    import_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def signed_amount(self) -> float:
        return self.amount if self.transaction_type == "credit" else -self.amount

    @classmethod
    def from_row(cls, row: dict) -> "BankTransaction":
        return cls(
            id=row["id"],
            bank_account_id=row.get("bank_account_id"),
            amount=to_float(row.get("amount")),
            transaction_type=row.get("transaction_type") or "debit",
            trans_date=row.get("trans_date"),
            organization_id=row.get("organization_id"),
            description=row.get("description"),
            reference=row.get("reference"),
            matched_journal_line_id=row.get("matched_journal_line_id"),
            status=row.get("status"),
            import_source=row.get("import_source"),
            import_id=row.get("import_id"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )


# ─── Conciliación ───

@dataclass
class BankReconciliation:
    id: str
    bank_account_id: int
    period_start: str
    period_end: str
    opening_balance: float = 0.0
    closing_balance: float = 0.0
    statement_balance: Optional[float] = None
    difference: Optional[float] = None
    status: str = "draft"  # draft | in_progress | closed
    organization_id: Optional[int] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
    closed_by: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    closed_at: Optional[str] = None
    bank_account: Optional[dict] = None

    @property
    def is_closed(self) -> bool:
        return self.status == "closed"

    @classmethod
    def from_row(cls, row: dict) -> "BankReconciliation":
        return cls(
            id=row["id"],
            bank_account_id=row.get("bank_account_id"),
            period_start=row.get("period_start"),
            period_end=row.get("period_end"),
            opening_balance=to_float(row.get("opening_balance")),
            closing_balance=to_float(row.get("closing_balance")),
            statement_balance=to_float_or_none(row.get("statement_balance")),
            difference=to_float_or_none(row.get("difference")),
            status=row.get("status") or "draft",
            organization_id=row.get("organization_id"),
            notes=row.get("notes"),
            created_by=row.get("created_by"),
            closed_by=row.get("closed_by"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
            closed_at=row.get("closed_at"),
            bank_account=row.get("bank_accounts"),
        )


@dataclass
class BankReconciliationItem:
    """Vínculo transacción ↔ conciliación. La existencia de la fila implica is_matched."""
    id: str
    reconciliation_id: str
    amount: float
    match_type: str  # payment | journal | manual | unmatched
    bank_transaction_id: Optional[int] = None
    matched_payment_id: Optional[str] = None
    matched_journal_line_id: Optional[int] = None
    is_matched: bool = True
    match_date: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[str] = None
    bank_transaction: Optional[dict] = None

    @classmethod
    def from_row(cls, row: dict) -> "BankReconciliationItem":
        return cls(
            id=row["id"],
            reconciliation_id=row.get("reconciliation_id"),
            amount=to_float(row.get("amount")),
            match_type=row.get("match_type") or "manual",
            bank_transaction_id=row.get("bank_transaction_id"),
            matched_payment_id=row.get("matched_payment_id"),
            matched_journal_line_id=row.get("matched_journal_line_id"),
            is_matched=bool(row.get("is_matched", True)),
            match_date=row.get("match_date"),
            notes=row.get("notes"),
            created_at=row.get("created_at"),
            bank_transaction=row.get("bank_transactions"),
        )


@dataclass
class ReconciliationSummary:
    """Resultado calculado de una conciliación."""
    opening_balance: float = 0.0
    statement_balance: float = 0.0
    matched_amount: float = 0.0
    matched_count: int = 0
    difference: float = 0.0
    closing_balance: float = 0.0

    @property
    def is_balanced(self) -> bool:
        return abs(self.difference) < 0.005


# ─── Estadísticas ───

@dataclass
class BankAccountStats:
    total_accounts: int = 0
    active_accounts: int = 0
    total_balance: float = 0.0
    pending_reconciliations: int = 0


@dataclass
class Currency:
    code: str
    name: str = ""
    symbol: str = "$"

