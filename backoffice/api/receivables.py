"""
Acceso a datos de cuentas por cobrar (cartera).

La mayoría de las lecturas pasan por funciones RPC de la base de datos, que
calculan estado y días vencidos y evitan problemas de RLS con los clientes.
"""

import logging
import math
from datetime import date, datetime, timedelta, timezone

from backoffice.api.context import TenantContext
from backoffice.api.supabase_client import SupabaseClient, DataAccessError, logged, utcnow_iso
from backoffice.config import AGING_PAGE_SIZE, DEFAULT_CURRENCY, REMINDER_INTERVAL_DAYS
from backoffice.models.fields import to_float, to_int
from backoffice.models.receivable_models import (
    CustomerAging,
    CustomerBalance,
    PaginatedResult,
    PaymentInput,
    Receivable,
    ReceivableFilters,
    ReceivableStats,
    Reminder,
)
from backoffice.services.aging_service import (
    compute_customer_aging,
    matches_aging_filter,
    summarize_receivables,
)
from backoffice.services.export_service import receivables_csv

logger = logging.getLogger(__name__)


class ReceivablesAPI:
    def __init__(self, client: SupabaseClient, ctx: TenantContext):
        self.client = client
        self.ctx = ctx

    def _paginated_params(self, filters: ReceivableFilters) -> dict:
        return {
            "org_id": self.ctx.require_organization(),
            "search_term": filters.search or None,
            "status_filter": filters.status,
            "aging_filter": filters.aging,
            "customer_id_filter": filters.customer_id or None,
            "date_from": filters.date_from or None,
            "date_to": filters.date_to or None,
            "page_size": filters.page_size,
            "page_number": filters.page_number,
        }

    # ─── Listados ───

    @logged("Error al obtener cuentas por cobrar paginadas")
    def list_paginated(self, filters: ReceivableFilters = None) -> PaginatedResult:
        filters = filters or ReceivableFilters()
        result = self.client.rpc(
            "get_accounts_receivable_paginated", self._paginated_params(filters)
        ).data or {}

        rows = result.get("data") or []
        total_count = to_int(result.get("total_count"))
        page_size = to_int(result.get("page_size")) or filters.page_size
        total_pages = result.get("total_pages")
        if total_pages is None:
            total_pages = math.ceil(total_count / page_size) if page_size else 0

        return PaginatedResult(
            data=[Receivable.from_row(row) for row in rows],
            total_count=total_count,
            page_size=page_size,
            page_number=to_int(result.get("page_number")) or filters.page_number,
            total_pages=to_int(total_pages),
        )

    @logged("Error al obtener cuentas por cobrar")
    def list_receivables(self, filters: ReceivableFilters = None, ref_date: date = None) -> list[Receivable]:
        """Todas las cuentas de la organización con los filtros aplicados en el cliente."""
        filters = filters or ReceivableFilters()
        org_id = self.ctx.require_organization()
        rows = self.client.rpc(
            "get_accounts_receivable_with_customers", {"org_id": org_id}
        ).data or []

        result = []
        for row in rows:
            if not _matches_search(row, filters.search):
                continue
            if filters.status and filters.status != "todos" and row.get("status") != filters.status:
                continue
            if not matches_aging_filter(row.get("due_date"), filters.aging, ref_date):
                continue
            if filters.customer_id and row.get("customer_id") != filters.customer_id:
                continue
            created = (row.get("created_at") or "")[:10]
            if filters.date_from and created < filters.date_from:
                continue
            if filters.date_to and created > filters.date_to:
                continue
            result.append(Receivable.from_row(row, default_name="N/A"))
        return result

    # ─── Aging ───

    @logged("Error al obtener reporte de aging")
    def aging_report(self, ref_date: date = None) -> list[CustomerAging]:
        params = self._paginated_params(ReceivableFilters(
            status="todos",
            aging="todos",
            page_size=AGING_PAGE_SIZE,
            page_number=1,
        ))
        result = self.client.rpc("get_accounts_receivable_paginated", params).data or {}
        return compute_customer_aging(result.get("data") or [], ref_date)

    # ─── Recordatorios ───

    @logged("Error al obtener recordatorios")
    def reminders_due(self, ref_date: date = None) -> list[Reminder]:
        """Cuentas vencidas con saldo sin recordatorio en los últimos días."""
        org_id = self.ctx.require_organization()
        now = datetime.now(timezone.utc)
        threshold = (now - timedelta(days=REMINDER_INTERVAL_DAYS)).isoformat()
        next_date = (ref_date or date.today()) + timedelta(days=REMINDER_INTERVAL_DAYS)

        rows = (
            self.client.table("accounts_receivable")
            .select("""
                *,
                customers!inner(full_name, email, phone)
            """)
            .eq("organization_id", org_id)
            .eq("status", "overdue")
            .gt("balance", 0)
            .or_(f"last_reminder_date.is.null,last_reminder_date.lte.{threshold}")
            .execute()
        ).data or []

        reminders = []
        for row in rows:
            customer = row.get("customers") or {}
            reminders.append(Reminder(
                id=row["id"],
                customer_id=row.get("customer_id"),
                customer_name=customer.get("full_name") or "N/A",
                customer_email=customer.get("email") or "",
                amount=to_float(row.get("balance")),
                due_date=row.get("due_date"),
                days_overdue=to_int(row.get("days_overdue")),
                last_reminder_date=row.get("last_reminder_date"),
                next_reminder_date=next_date.isoformat(),
            ))
        return reminders

    @logged("Error al actualizar fecha de recordatorio")
    def touch_reminder(self, account_id: str):
        org_id = self.ctx.require_organization()
        now = utcnow_iso()
        (
            self.client.table("accounts_receivable")
            .update({"last_reminder_date": now, "updated_at": now})
            .eq("id", account_id)
            .eq("organization_id", org_id)
            .execute()
        )

    # ─── Abonos ───

    @logged("Error al aplicar abono")
    def apply_payment(self, account_id: str, payment: PaymentInput):
        """
        Registra un pago contra la cuenta.

        El trigger de la base de datos ajusta saldo y estado de la cuenta;
        aquí solo se inserta el pago.
        """
        org_id = self.ctx.require_organization()
        branch_id = self.ctx.require_branch()
        user_id = self.ctx.require_user()

        detail = self.client.rpc(
            "get_account_receivable_detail", {"account_id": account_id, "org_id": org_id}
        ).data
        if not detail:
            raise DataAccessError(
                "No se pudo encontrar la cuenta por cobrar o no tiene permisos para acceder a ella",
                status=404,
            )

        (
            self.client.table("payments")
            .insert({
                "organization_id": org_id,
                "branch_id": branch_id,
                "source": "account_receivable",
                "source_id": account_id,
                "method": payment.payment_method,
                "amount": float(payment.amount),
                "currency": DEFAULT_CURRENCY,
                "reference": payment.reference,
                "status": "completed",
                "created_by": user_id,
                "created_at": payment.payment_date,
            })
            .execute()
        )

    # ─── Estadísticas ───

    @logged("Error al obtener estadísticas de cartera")
    def get_stats(self) -> ReceivableStats:
        org_id = self.ctx.require_organization()
        rows = (
            self.client.table("accounts_receivable")
            .select("amount, balance, status, days_overdue")
            .eq("organization_id", org_id)
            .execute()
        ).data or []
        return summarize_receivables(rows)

    def get_stats_optimized(self) -> ReceivableStats:
        """Estadísticas vía RPC; si la función falla se calculan en el cliente."""
        org_id = self.ctx.require_organization()
        try:
            data = self.client.rpc("get_accounts_receivable_stats", {"org_id": org_id}).data
        except DataAccessError:
            logger.warning("RPC de estadísticas no disponible, calculando en el cliente")
            return self.get_stats()

        if not data:
            return ReceivableStats()
        row = data[0] if isinstance(data, list) else data
        return ReceivableStats(
            total_cuentas=to_int(row.get("total_cuentas")),
            total_amount=to_float(row.get("total_amount")),
            total_balance=to_float(row.get("total_balance")),
            current_amount=to_float(row.get("current_amount")),
            overdue_amount=to_float(row.get("overdue_amount")),
            paid_amount=to_float(row.get("paid_amount")),
            partial_amount=to_float(row.get("partial_amount")),
            promedio_dias_cobro=to_float(row.get("promedio_dias_cobro")),
        )

    @logged("Error al obtener balances de clientes")
    def customer_balances(self, customer_ids: list[str]) -> list[CustomerBalance]:
        if not customer_ids:
            return []
        org_id = self.ctx.require_organization()
        rows = self.client.rpc(
            "get_accounts_receivable_for_customers",
            {"customer_ids": list(customer_ids), "org_id": org_id},
        ).data or []
        return [
            CustomerBalance(
                customer_id=row.get("customer_id"),
                balance=to_float(row.get("balance")),
                days_overdue=to_int(row.get("days_overdue")),
                status=row.get("status"),
                due_date=row.get("due_date"),
            )
            for row in rows
        ]

    # ─── Exportación ───

    def export_csv(self, filters: ReceivableFilters = None) -> str:
        return receivables_csv(self.list_receivables(filters))


def _matches_search(row: dict, search: str | None) -> bool:
    if not search:
        return True
    term = search.lower()
    return any(
        term in (row.get(key) or "").lower()
        for key in ("customer_name", "customer_email", "customer_phone")
    )
