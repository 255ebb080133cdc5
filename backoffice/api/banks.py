"""
Acceso a datos de bancos: cuentas, transacciones y conciliación bancaria.

Tablas: bank_accounts, bank_transactions, bank_reconciliations,
bank_reconciliation_items, organization_currencies, currencies.
"""

import logging

from backoffice.api.context import TenantContext
from backoffice.api.supabase_client import SupabaseClient, DataAccessError, logged, utcnow_iso
from backoffice.config import (
    BALANCE_UPDATE_RETRIES,
    DEFAULT_CURRENCIES,
    DEFAULT_CURRENCY,
    PENDING_RECONCILIATION_STATUSES,
)
from backoffice.models.bank_models import (
    BankAccount,
    BankAccountStats,
    BankReconciliation,
    BankReconciliationItem,
    BankTransaction,
    Currency,
)
from backoffice.models.fields import to_float
from backoffice.services.reconciliation_service import apply_balance_delta, summarize_reconciliation

logger = logging.getLogger(__name__)

MATCH_TYPES = ("payment", "journal", "manual")
TRANSACTION_TYPES = ("debit", "credit")


class ReconciliationClosedError(ValueError):
    """La conciliación está cerrada; el cierre es terminal."""


class BalanceConflictError(DataAccessError):
    """Otro proceso modificó el saldo en cada reintento."""


class BanksAPI:
    def __init__(self, client: SupabaseClient, ctx: TenantContext):
        self.client = client
        self.ctx = ctx

    # ─── Cuentas bancarias ───

    @logged("Error obteniendo cuentas bancarias")
    def list_accounts(self) -> list[BankAccount]:
        org_id = self.ctx.require_organization()
        resp = (
            self.client.table("bank_accounts")
            .select("*")
            .eq("organization_id", org_id)
            .order("name")
            .execute()
        )
        return [BankAccount.from_row(row) for row in resp.data or []]

    @logged("Error obteniendo cuenta bancaria")
    def get_account(self, account_id: int) -> BankAccount | None:
        org_id = self.ctx.require_organization()
        try:
            resp = (
                self.client.table("bank_accounts")
                .select("*")
                .eq("id", account_id)
                .eq("organization_id", org_id)
                .single()
                .execute()
            )
        except DataAccessError as e:
            if e.is_not_found:
                return None
            raise
        return BankAccount.from_row(resp.data)

    @logged("Error creando cuenta bancaria")
    def create_account(self, data: dict) -> BankAccount:
        org_id = self.ctx.require_organization()
        branch_id = self.ctx.require_branch()
        now = utcnow_iso()
        initial = data.get("initial_balance") or 0
        resp = (
            self.client.table("bank_accounts")
            .insert({
                "organization_id": org_id,
                "branch_id": branch_id,
                "name": data.get("name"),
                "account_number": data.get("account_number"),
                "bank_name": data.get("bank_name"),
                "account_type": data.get("account_type") or "checking",
                "currency": data.get("currency") or DEFAULT_CURRENCY,
                "balance": initial,
                "initial_balance": initial,
                "is_active": True,
                "created_at": now,
                "updated_at": now,
            })
            .select("*")
            .single()
            .execute()
        )
        return BankAccount.from_row(resp.data)

    @logged("Error actualizando cuenta bancaria")
    def update_account(self, account_id: int, updates: dict):
        (
            self.client.table("bank_accounts")
            .update({**updates, "updated_at": utcnow_iso()})
            .eq("id", account_id)
            .execute()
        )

    @logged("Error cambiando estado de cuenta")
    def set_account_active(self, account_id: int, is_active: bool):
        (
            self.client.table("bank_accounts")
            .update({"is_active": is_active, "updated_at": utcnow_iso()})
            .eq("id", account_id)
            .execute()
        )

    # ─── Transacciones ───

    @logged("Error obteniendo transacciones")
    def list_transactions(
        self,
        account_id: int,
        start_date: str = None,
        end_date: str = None,
        status: str = None,
        limit: int = None,
    ) -> list[BankTransaction]:
        org_id = self.ctx.require_organization()
        query = (
            self.client.table("bank_transactions")
            .select("*")
            .eq("organization_id", org_id)
            .eq("bank_account_id", account_id)
            .order("trans_date", ascending=False)
        )
        if start_date:
            query = query.gte("trans_date", start_date)
        if end_date:
            query = query.lte("trans_date", end_date)
        if status:
            query = query.eq("status", status)
        if limit:
            query = query.limit(limit)
        return [BankTransaction.from_row(row) for row in query.execute().data or []]

    @logged("Error creando transacción")
    def create_transaction(self, data: dict) -> BankTransaction:
        """Inserta la transacción y luego ajusta el saldo de la cuenta."""
        org_id = self.ctx.require_organization()
        tx_type = data.get("transaction_type")
        if tx_type not in TRANSACTION_TYPES:
            raise ValueError(f"Tipo de transacción inválido: {tx_type}")

        now = utcnow_iso()
        resp = (
            self.client.table("bank_transactions")
            .insert({
                "organization_id": org_id,
                "bank_account_id": data["bank_account_id"],
                "trans_date": data.get("trans_date") or now,
                "description": data.get("description"),
                "amount": data["amount"],
                "reference": data.get("reference"),
                "transaction_type": tx_type,
                "status": "pending",
                "created_at": now,
                "updated_at": now,
            })
            .select("*")
            .single()
            .execute()
        )

        self._apply_to_balance(data["bank_account_id"], float(data["amount"]), tx_type)
        return BankTransaction.from_row(resp.data)

    def _apply_to_balance(self, account_id: int, amount: float, tx_type: str) -> float:
        """
        Actualiza el saldo con compare-and-swap.

        El PATCH solo aplica si el saldo sigue siendo el leído; si no vuelve
        ninguna fila otro escritor ganó y se reintenta con el saldo nuevo.
        """
        for attempt in range(BALANCE_UPDATE_RETRIES):
            account = (
                self.client.table("bank_accounts")
                .select("balance")
                .eq("id", account_id)
                .single()
                .execute()
            ).data
            raw_balance = account.get("balance")
            new_balance = apply_balance_delta(to_float(raw_balance), amount, tx_type)

            query = self.client.table("bank_accounts").update({
                "balance": new_balance,
                "updated_at": utcnow_iso(),
            }).eq("id", account_id)
            if raw_balance is None:
                query = query.is_("balance", None)
            else:
                query = query.eq("balance", raw_balance)

            if query.execute().data:
                return new_balance
            logger.warning(
                "Conflicto actualizando saldo de la cuenta %s (intento %d)", account_id, attempt + 1
            )

        raise BalanceConflictError(
            f"No se pudo actualizar el saldo de la cuenta {account_id}: modificaciones concurrentes"
        )

    # ─── Conciliación bancaria ───

    @logged("Error obteniendo conciliaciones")
    def list_reconciliations(self, account_id: int = None) -> list[BankReconciliation]:
        org_id = self.ctx.require_organization()
        query = (
            self.client.table("bank_reconciliations")
            .select("""
                *,
                bank_accounts:bank_account_id(id, name, bank_name, account_number)
            """)
            .eq("organization_id", org_id)
            .order("period_end", ascending=False)
        )
        if account_id:
            query = query.eq("bank_account_id", account_id)
        return [BankReconciliation.from_row(row) for row in query.execute().data or []]

    @logged("Error obteniendo conciliación")
    def get_reconciliation(self, reconciliation_id: str) -> BankReconciliation | None:
        try:
            resp = (
                self.client.table("bank_reconciliations")
                .select("""
                    *,
                    bank_accounts:bank_account_id(id, name, bank_name, account_number, balance)
                """)
                .eq("id", reconciliation_id)
                .single()
                .execute()
            )
        except DataAccessError as e:
            if e.is_not_found:
                return None
            raise
        return BankReconciliation.from_row(resp.data)

    @logged("Error creando conciliación")
    def create_reconciliation(
        self,
        bank_account_id: int,
        period_start: str,
        period_end: str,
        opening_balance: float,
        statement_balance: float = None,
    ) -> BankReconciliation:
        org_id = self.ctx.require_organization()
        now = utcnow_iso()
        resp = (
            self.client.table("bank_reconciliations")
            .insert({
                "organization_id": org_id,
                "bank_account_id": bank_account_id,
                "period_start": period_start,
                "period_end": period_end,
                "opening_balance": opening_balance,
                "closing_balance": opening_balance,
                "statement_balance": statement_balance,
                "difference": 0,
                "status": "draft",
                "created_by": self.ctx.user_id,
                "created_at": now,
                "updated_at": now,
            })
            .select("*")
            .single()
            .execute()
        )
        return BankReconciliation.from_row(resp.data)

    def _require_open(self, reconciliation_id: str) -> BankReconciliation:
        reconciliation = self.get_reconciliation(reconciliation_id)
        if reconciliation is None:
            raise DataAccessError("Conciliación no encontrada", status=404)
        if reconciliation.is_closed:
            raise ReconciliationClosedError("La conciliación ya está cerrada")
        return reconciliation

    @logged("Error cerrando conciliación")
    def close_reconciliation(self, reconciliation_id: str) -> BankReconciliation:
        """Cierra la conciliación guardando diferencia y saldo final. No hay reapertura."""
        reconciliation = self._require_open(reconciliation_id)
        summary = summarize_reconciliation(
            reconciliation, self.list_reconciliation_items(reconciliation_id)
        )
        now = utcnow_iso()
        resp = (
            self.client.table("bank_reconciliations")
            .update({
                "status": "closed",
                "difference": summary.difference,
                "closing_balance": summary.closing_balance,
                "closed_by": self.ctx.user_id,
                "closed_at": now,
                "updated_at": now,
            })
            .eq("id", reconciliation_id)
            .select("*")
            .single()
            .execute()
        )
        return BankReconciliation.from_row(resp.data)

    # ─── Items de conciliación ───

    @logged("Error obteniendo items de conciliación")
    def list_reconciliation_items(self, reconciliation_id: str) -> list[BankReconciliationItem]:
        resp = (
            self.client.table("bank_reconciliation_items")
            .select("""
                *,
                bank_transactions:bank_transaction_id(id, trans_date, description, amount, transaction_type)
            """)
            .eq("reconciliation_id", reconciliation_id)
            .order("created_at", ascending=False)
            .execute()
        )
        return [BankReconciliationItem.from_row(row) for row in resp.data or []]

    @logged("Error haciendo match")
    def match_transaction(
        self,
        reconciliation_id: str,
        transaction_id: int,
        match_type: str,
        matched_id=None,
    ) -> BankReconciliationItem:
        if match_type not in MATCH_TYPES:
            raise ValueError(f"Tipo de match inválido: {match_type}")
        reconciliation = self._require_open(reconciliation_id)

        tx = (
            self.client.table("bank_transactions")
            .select("amount")
            .eq("id", transaction_id)
            .single()
            .execute()
        ).data

        now = utcnow_iso()
        resp = (
            self.client.table("bank_reconciliation_items")
            .insert({
                "reconciliation_id": reconciliation_id,
                "bank_transaction_id": transaction_id,
                "match_type": match_type,
                "matched_payment_id": matched_id if match_type == "payment" else None,
                "matched_journal_line_id": matched_id if match_type == "journal" else None,
                "amount": tx["amount"],
                "is_matched": True,
                "match_date": now,
                "created_at": now,
            })
            .select("*")
            .single()
            .execute()
        )

        (
            self.client.table("bank_transactions")
            .update({"status": "matched", "updated_at": now})
            .eq("id", transaction_id)
            .execute()
        )

        if reconciliation.status == "draft":
            (
                self.client.table("bank_reconciliations")
                .update({"status": "in_progress", "updated_at": now})
                .eq("id", reconciliation_id)
                .execute()
            )
        return BankReconciliationItem.from_row(resp.data)

    @logged("Error deshaciendo match")
    def unmatch_transaction(self, item_id: str, transaction_id: int):
        (
            self.client.table("bank_reconciliation_items")
            .delete()
            .eq("id", item_id)
            .execute()
        )
        (
            self.client.table("bank_transactions")
            .update({"status": "pending", "updated_at": utcnow_iso()})
            .eq("id", transaction_id)
            .execute()
        )

    # ─── Estadísticas ───

    @logged("Error obteniendo estadísticas")
    def get_stats(self) -> BankAccountStats:
        org_id = self.ctx.require_organization()
        accounts = (
            self.client.table("bank_accounts")
            .select("id, balance, is_active")
            .eq("organization_id", org_id)
            .execute()
        ).data or []

        active = [a for a in accounts if a.get("is_active")]
        pending = (
            self.client.table("bank_reconciliations")
            .select("id", count="exact", head=True)
            .eq("organization_id", org_id)
            .in_("status", PENDING_RECONCILIATION_STATUSES)
            .execute()
        ).count

        return BankAccountStats(
            total_accounts=len(accounts),
            active_accounts=len(active),
            total_balance=sum(to_float(a.get("balance")) for a in active),
            pending_reconciliations=pending or 0,
        )

    # ─── Monedas ───

    def list_currencies(self) -> list[Currency]:
        """Monedas de la organización. Ante error o sin configuración: COP."""
        org_id = self.ctx.require_organization()
        default = [Currency(**c) for c in DEFAULT_CURRENCIES]
        try:
            org_currencies = (
                self.client.table("organization_currencies")
                .select("currency_code")
                .eq("organization_id", org_id)
                .execute()
            ).data or []
            if not org_currencies:
                return default

            codes = [c["currency_code"] for c in org_currencies]
            currencies = (
                self.client.table("currencies")
                .select("code, name, symbol")
                .in_("code", codes)
                .execute()
            ).data or []
        except DataAccessError:
            logger.exception("Error obteniendo monedas")
            return default

        return [Currency(code=c["code"], name=c.get("name") or "", symbol=c.get("symbol") or "$")
                for c in currencies] or default
