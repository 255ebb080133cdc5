import pytest

from backoffice.api.context import MissingContextError, TenantContext
from backoffice.utils.actions import run_action, run_command
from backoffice.utils.formatting import format_cop, format_days, format_percent


@pytest.mark.parametrize("value, expected", [
    (1500, "$ 1.500"),
    (0, "$ 0"),
    (-250000, "-$ 250.000"),
    (1234567.6, "$ 1.234.568"),
])
def test_format_cop(value, expected):
    assert format_cop(value) == expected


def test_format_cop_with_decimals():
    assert format_cop(1500.5, decimals=2) == "$ 1.500,50"


def test_format_percent():
    assert format_percent(23.456) == "23.5%"


@pytest.mark.parametrize("value, expected", [
    (None, "Sin vencimiento"),
    (-5, "Vence en 5 días"),
    (-1, "Vence mañana"),
    (0, "Vence hoy"),
    (1, "1 día"),
    (45, "45 días"),
])
def test_format_days(value, expected):
    assert format_days(value) == expected


# ─── Acciones ───

def test_run_action_returns_result_and_notifies():
    messages = []
    assert run_action(lambda: 42, success="Listo", notify=messages.append) == 42
    assert messages == ["Listo"]


def test_run_action_reports_failure():
    messages = []

    def fail():
        raise ValueError("sin saldo")

    assert run_action(fail, failure="No se pudo pagar", notify=messages.append) is None
    assert messages == ["No se pudo pagar: sin saldo"]


def test_run_command_reports_success_flag():
    messages = []
    assert run_command(lambda: None, notify=messages.append) is True
    assert messages == []

    def fail():
        raise RuntimeError("x")

    assert run_command(fail, notify=messages.append) is False


# ─── Contexto ───

def test_context_requires_values():
    ctx = TenantContext(organization_id=None)
    with pytest.raises(MissingContextError):
        ctx.require_organization()
    with pytest.raises(MissingContextError):
        ctx.require_branch()
    with pytest.raises(MissingContextError):
        ctx.require_user()


def test_context_is_immutable_copy():
    ctx = TenantContext(organization_id=1)
    scoped = ctx.with_branch(7).with_user("u-9")
    assert ctx.branch_id is None
    assert scoped.require_branch() == 7
    assert scoped.require_user() == "u-9"
