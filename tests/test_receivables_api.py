from datetime import date, datetime, timedelta, timezone

import pytest

from backoffice.api.receivables import ReceivablesAPI
from backoffice.api.supabase_client import DataAccessError
from backoffice.models.receivable_models import PaymentInput, ReceivableFilters
from conftest import make_response

REF = date(2024, 6, 30)


@pytest.fixture
def api(client, ctx):
    return ReceivablesAPI(client, ctx)


def _ar(ar_id, customer_id, balance, due_date, status="overdue", **extra):
    row = {
        "id": ar_id,
        "organization_id": 1,
        "customer_id": customer_id,
        "amount": balance,
        "balance": balance,
        "due_date": due_date,
        "status": status,
        "created_at": "2024-05-01T10:00:00Z",
    }
    row.update(extra)
    return row


def test_paginated_list_passes_filters_to_rpc(api, fake):
    received = {}

    def paginated(params):
        received.update(params)
        return {
            "data": [_ar("a1", "c1", "1500.00", "2024-06-01", customer_name="Ana")],
            "total_count": 41,
            "page_size": 20,
            "page_number": 3,
            "total_pages": 3,
        }

    fake.register_rpc("get_accounts_receivable_paginated", paginated)
    result = api.list_paginated(ReceivableFilters(search="ana", status="overdue", page_number=3))

    assert received["org_id"] == 1
    assert received["search_term"] == "ana"
    assert received["status_filter"] == "overdue"
    assert received["customer_id_filter"] is None
    assert received["page_number"] == 3
    assert result.total_count == 41
    assert result.total_pages == 3
    assert result.data[0].balance == 1500
    assert result.data[0].customer_name == "Ana"


def test_list_receivables_applies_client_side_filters(api, fake):
    rows = [
        _ar("a1", "c1", 100, "2024-06-20", customer_name="Ana Gómez", customer_email="ana@mail.co"),
        _ar("a2", "c2", 200, "2024-04-01", customer_name="Luis", customer_phone="3001234567"),
        _ar("a3", "c3", 300, "2024-06-20", status="current", customer_name=None),
    ]
    fake.register_rpc("get_accounts_receivable_with_customers", lambda params: rows)

    assert [r.id for r in api.list_receivables(ReceivableFilters(search="ANA"), REF)] == ["a1"]
    assert [r.id for r in api.list_receivables(ReceivableFilters(search="300123"), REF)] == ["a2"]
    assert [r.id for r in api.list_receivables(ReceivableFilters(status="overdue"), REF)] == ["a1", "a2"]
    assert [r.id for r in api.list_receivables(ReceivableFilters(aging="61-90"), REF)] == ["a2"]
    assert [r.id for r in api.list_receivables(ReceivableFilters(customer_id="c3"), REF)] == ["a3"]
    assert api.list_receivables(ReceivableFilters(customer_id="c3"), REF)[0].customer_name == "N/A"
    assert api.list_receivables(ReceivableFilters(date_from="2024-05-02"), REF) == []


def test_aging_report_requests_one_large_page(api, fake):
    received = {}

    def paginated(params):
        received.update(params)
        return {"data": [
            _ar("a1", "c1", 100, "2024-05-31", customer_name="Ana"),
            _ar("a2", "c1", 50, "2024-01-01", customer_name="Ana"),
            _ar("a3", "c2", 0, "2024-01-01", customer_name="Luis"),
        ]}

    fake.register_rpc("get_accounts_receivable_paginated", paginated)
    [aging] = api.aging_report(REF)

    assert received["page_size"] == 1000
    assert received["page_number"] == 1
    assert received["status_filter"] == "todos"
    assert received["aging_filter"] == "todos"
    assert aging.current == 100
    assert aging.days_90_plus == 50
    assert aging.total == 150


def test_reminders_skip_recently_reminded_accounts(api, fake):
    recent = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()
    old = (datetime.now(timezone.utc) - timedelta(days=10)).isoformat()
    customer = {"full_name": "Ana", "email": "ana@mail.co", "phone": "300"}
    fake.seed(
        "accounts_receivable",
        _ar("a1", "c1", 100, "2024-05-01", last_reminder_date=None, customers=customer),
        _ar("a2", "c1", 100, "2024-05-01", last_reminder_date=old, customers=customer),
        _ar("a3", "c1", 100, "2024-05-01", last_reminder_date=recent, customers=customer),
        _ar("a4", "c1", 0, "2024-05-01", last_reminder_date=None, customers=customer),
        _ar("a5", "c1", 100, "2024-07-30", status="current", customers=customer),
    )

    reminders = api.reminders_due(REF)

    assert sorted(r.id for r in reminders) == ["a1", "a2"]
    assert reminders[0].customer_name == "Ana"
    assert reminders[0].next_reminder_date == "2024-07-03"


def test_touch_reminder_sets_last_reminder_date(api, fake):
    fake.seed("accounts_receivable", _ar("a1", "c1", 100, "2024-05-01"))
    api.touch_reminder("a1")
    assert fake.row("accounts_receivable", "a1")["last_reminder_date"] is not None


def test_apply_payment_inserts_payment_row(api, fake):
    fake.register_rpc("get_account_receivable_detail", lambda params: [{"id": params["account_id"], "balance": "500"}])

    api.apply_payment("a1", PaymentInput(amount=200, payment_method="cash", payment_date="2024-06-30", reference="R-1"))

    [payment] = fake.rows("payments")
    assert payment["source"] == "account_receivable"
    assert payment["source_id"] == "a1"
    assert payment["amount"] == 200
    assert payment["currency"] == "COP"
    assert payment["status"] == "completed"
    assert payment["branch_id"] == 10
    assert payment["created_by"] == "user-1"


def test_apply_payment_fails_when_account_not_visible(api, fake):
    fake.register_rpc("get_account_receivable_detail", lambda params: [])
    with pytest.raises(DataAccessError):
        api.apply_payment("a1", PaymentInput(amount=200, payment_method="cash", payment_date="2024-06-30"))
    assert fake.rows("payments") == []


def test_stats_optimized_falls_back_to_client_aggregation(api, fake):
    fake.register_rpc(
        "get_accounts_receivable_stats",
        lambda params: make_response(400, {"code": "42883", "message": "function does not exist"}),
    )
    fake.seed(
        "accounts_receivable",
        _ar("a1", "c1", 100, "2024-05-01", days_overdue=10),
        _ar("a2", "c2", 300, "2024-06-30", status="current", days_overdue=0),
    )

    stats = api.get_stats_optimized()

    assert stats.total_cuentas == 2
    assert stats.overdue_amount == 100
    assert stats.current_amount == 300


def test_stats_optimized_reads_rpc_row(api, fake):
    fake.register_rpc("get_accounts_receivable_stats", lambda params: [{
        "total_cuentas": "4", "total_balance": "1200.50", "promedio_dias_cobro": "12.5",
    }])
    stats = api.get_stats_optimized()
    assert stats.total_cuentas == 4
    assert stats.total_balance == 1200.5
    assert stats.promedio_dias_cobro == 12.5


def test_customer_balances_skip_rpc_for_empty_list(api, fake):
    assert api.customer_balances([]) == []
    assert fake.requests == []

    fake.register_rpc("get_accounts_receivable_for_customers", lambda params: [
        {"customer_id": cid, "balance": "10", "days_overdue": 3, "status": "overdue"}
        for cid in params["customer_ids"]
    ])
    balances = api.customer_balances(["c1", "c2"])
    assert [b.customer_id for b in balances] == ["c1", "c2"]
    assert balances[0].balance == 10


def test_export_csv_uses_filtered_rows(api, fake):
    fake.register_rpc("get_accounts_receivable_with_customers", lambda params: [
        _ar("a1", "c1", 100, "2024-06-20", customer_name="Ana"),
        _ar("a2", "c2", 200, "2024-06-20", status="current", customer_name="Luis"),
    ])
    csv_text = api.export_csv(ReceivableFilters(status="current"))
    assert "Luis" in csv_text
    assert "Ana" not in csv_text
