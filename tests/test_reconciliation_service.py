import pytest

from backoffice.models.bank_models import BankReconciliation, BankReconciliationItem
from backoffice.services.reconciliation_service import (
    apply_balance_delta,
    matched_amount,
    summarize_reconciliation,
)


def _reconciliation(**kwargs):
    defaults = dict(
        id="r1",
        bank_account_id=1,
        period_start="2024-06-01",
        period_end="2024-06-30",
        opening_balance=1000,
        statement_balance=1200,
    )
    defaults.update(kwargs)
    return BankReconciliation(**defaults)


def _item(amount, is_matched=True):
    return BankReconciliationItem(
        id=f"i{amount}", reconciliation_id="r1", amount=amount, match_type="manual", is_matched=is_matched
    )


def test_difference_is_statement_minus_opening_plus_matched():
    summary = summarize_reconciliation(_reconciliation(), [_item(100), _item(50)])
    assert summary.matched_amount == 150
    assert summary.matched_count == 2
    assert summary.closing_balance == 1150
    assert summary.difference == 50
    assert not summary.is_balanced


def test_unmatched_items_do_not_count():
    items = [_item(200), _item(999, is_matched=False)]
    assert matched_amount(items) == 200
    assert summarize_reconciliation(_reconciliation(), items).is_balanced


def test_missing_statement_balance_is_treated_as_zero():
    summary = summarize_reconciliation(_reconciliation(statement_balance=None), [])
    assert summary.statement_balance == 0
    assert summary.difference == -1000


def test_balance_delta_by_transaction_type():
    assert apply_balance_delta(500, 100, "credit") == 600
    assert apply_balance_delta(600, 40, "debit") == 560
    with pytest.raises(ValueError):
        apply_balance_delta(500, 100, "refund")
