from datetime import date

from backoffice.models.receivable_models import Receivable
from backoffice.services.export_service import export_filename, receivables_csv


def _receivable(**kwargs):
    defaults = dict(
        id="ar-1",
        customer_id="c1",
        amount=1500.0,
        balance=500.0,
        due_date="2024-06-01",
        status="overdue",
        days_overdue=29,
        created_at="2024-05-01",
        customer_name="Ana",
        customer_email="ana@mail.co",
        customer_phone="300",
    )
    defaults.update(kwargs)
    return Receivable(**defaults)


def test_csv_quotes_every_text_field():
    csv_text = receivables_csv([_receivable(customer_name='Pérez, "Don" Juan', customer_email="a,b@mail.co")])
    header, row = csv_text.strip().split("\n")

    assert header.startswith('"ID","Cliente","Email"')
    assert '"Pérez, ""Don"" Juan"' in row
    assert '"a,b@mail.co"' in row
    assert ',1500.0,500.0,' in row
    assert '"N/A"' in row


def test_csv_keeps_newlines_inside_quoted_field():
    csv_text = receivables_csv([_receivable(customer_name="Línea 1\nLínea 2")])
    assert '"Línea 1\nLínea 2"' in csv_text


def test_export_filename_uses_date():
    assert export_filename(ref_date=date(2024, 6, 30)) == "cuentas-por-cobrar-2024-06-30.csv"
