"""
Servicio de Conciliación Bancaria.

Calcula el estado de una conciliación a partir de sus items:

    diferencia = saldo_extracto − (saldo_inicial + monto_conciliado)

Una conciliación está cuadrada cuando la diferencia es cero.
"""

from backoffice.models.bank_models import (
    BankReconciliation,
    BankReconciliationItem,
    ReconciliationSummary,
)


def matched_amount(items: list[BankReconciliationItem]) -> float:
    return sum(i.amount for i in items if i.is_matched)


def summarize_reconciliation(
    reconciliation: BankReconciliation,
    items: list[BankReconciliationItem],
) -> ReconciliationSummary:
    """Resumen de la conciliación. Sin saldo de extracto se asume 0."""
    matched = [i for i in items if i.is_matched]
    amount = matched_amount(matched)
    statement = reconciliation.statement_balance or 0.0
    closing = reconciliation.opening_balance + amount

    return ReconciliationSummary(
        opening_balance=reconciliation.opening_balance,
        statement_balance=statement,
        matched_amount=amount,
        matched_count=len(matched),
        difference=statement - closing,
        closing_balance=closing,
    )


def apply_balance_delta(balance: float, amount: float, transaction_type: str) -> float:
    """Nuevo saldo de la cuenta: crédito suma, débito resta."""
    if transaction_type == "credit":
        return balance + amount
    if transaction_type == "debit":
        return balance - amount
    raise ValueError(f"Tipo de transacción inválido: {transaction_type}")
