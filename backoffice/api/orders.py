"""
Acceso a datos del pedido de una mesa: sesión, venta, items y tickets de cocina.

Tablas: table_sessions, sales, sale_items, kitchen_tickets, kitchen_ticket_items,
organization_payment_methods.
"""

import logging

from backoffice.api.context import TenantContext
from backoffice.api.supabase_client import SupabaseClient, DataAccessError, logged, utcnow_iso
from backoffice.config import ACTIVE_SESSION_STATUSES
from backoffice.models.pos_models import (
    KitchenTicket,
    PaymentMethod,
    PreCuenta,
    ProductToAdd,
    SaleItem,
    TableSession,
    TableSessionDetail,
)
from backoffice.services.table_service import (
    compute_pre_cuenta,
    duplicate_sessions,
    pick_main_session,
    sale_totals,
)

logger = logging.getLogger(__name__)

SESSION_DETAIL_SELECT = """
    *,
    restaurant_tables!table_sessions_restaurant_table_id_fkey(id, name, zone, capacity, state),
    sales!table_sessions_sale_id_fkey(*)
"""

SALE_ITEM_SELECT = """
    *,
    product:products!sale_items_product_id_fkey(id, name, description, sku)
"""


class OrdersAPI:
    def __init__(self, client: SupabaseClient, ctx: TenantContext):
        self.client = client
        self.ctx = ctx

    def _table_sessions(self, table_id: str, columns: str = "*") -> list[dict]:
        org_id = self.ctx.require_organization()
        return (
            self.client.table("table_sessions")
            .select(columns)
            .eq("restaurant_table_id", table_id)
            .eq("organization_id", org_id)
            .in_("status", ACTIVE_SESSION_STATUSES)
            .order("opened_at", ascending=False)
            .execute()
        ).data or []

    # ─── Detalle de mesa ───

    @logged("Error obteniendo sesión de mesa")
    def get_table_detail(self, table_id: str) -> TableSessionDetail | None:
        """
        Sesión principal de la mesa con los items de todas sus sesiones activas.

        Una mesa combinada tiene varias sesiones; la principal es la abierta
        más recientemente.
        """
        rows = self._table_sessions(table_id, SESSION_DETAIL_SELECT)
        if not rows:
            return None

        by_id = {row["id"]: row for row in rows}
        main = pick_main_session([TableSession.from_row(row) for row in rows])
        main_row = by_id[main.id]

        sale_ids = [row["sale_id"] for row in rows if row.get("sale_id")]
        items = []
        if sale_ids:
            items = (
                self.client.table("sale_items")
                .select(SALE_ITEM_SELECT)
                .in_("sale_id", sale_ids)
                .order("created_at")
                .execute()
            ).data or []

        return TableSessionDetail(
            session=main,
            table=main_row.get("restaurant_tables"),
            sale=main_row.get("sales"),
            items=[SaleItem.from_row(item) for item in items],
        )

    @logged("Error iniciando sesión de mesa")
    def start_session(self, table_id: str, server_id: str = None, customers: int = 2) -> TableSessionDetail:
        """
        Abre la mesa o retoma su sesión.

        Si ya hay sesiones activas se conserva la más reciente y se cierran las
        demás como "completed".
        """
        org_id = self.ctx.require_organization()
        existing = [TableSession.from_row(row) for row in self._table_sessions(table_id)]

        if existing:
            duplicates = duplicate_sessions(existing)
            if duplicates:
                logger.warning(
                    "Mesa %s con %d sesiones activas; cerrando %d duplicadas",
                    table_id, len(existing), len(duplicates),
                )
                now = utcnow_iso()
                (
                    self.client.table("table_sessions")
                    .update({"status": "completed", "closed_at": now, "updated_at": now})
                    .in_("id", [s.id for s in duplicates])
                    .execute()
                )
            return self.get_table_detail(table_id)

        (
            self.client.table("table_sessions")
            .insert({
                "organization_id": org_id,
                "restaurant_table_id": table_id,
                "server_id": server_id or self.ctx.require_user(),
                "customers": customers,
                "status": "active",
                "opened_at": utcnow_iso(),
            })
            .select("*")
            .single()
            .execute()
        )
        (
            self.client.table("restaurant_tables")
            .update({"state": "occupied", "updated_at": utcnow_iso()})
            .eq("id", table_id)
            .execute()
        )
        return self.get_table_detail(table_id)

    # ─── Productos ───

    def _ensure_sale(self, session_id: str) -> str:
        """Retorna la venta de la sesión, creándola y vinculándola si no existe."""
        org_id = self.ctx.require_organization()
        session = (
            self.client.table("table_sessions")
            .select("sale_id, restaurant_table_id, server_id")
            .eq("id", session_id)
            .single()
            .execute()
        ).data
        if session.get("sale_id"):
            return session["sale_id"]

        sale = (
            self.client.table("sales")
            .insert({
                "organization_id": org_id,
                "branch_id": self.ctx.require_branch(),
                "user_id": session.get("server_id"),
                "status": "pending",
                "payment_status": "pending",
                "subtotal": 0,
                "tax_total": 0,
                "discount_total": 0,
                "total": 0,
                "balance": 0,
            })
            .select("*")
            .single()
            .execute()
        ).data
        (
            self.client.table("table_sessions")
            .update({"sale_id": sale["id"], "updated_at": utcnow_iso()})
            .eq("id", session_id)
            .execute()
        )
        return sale["id"]

    @logged("Error agregando productos")
    def add_products(self, session_id: str, products: list[ProductToAdd]) -> list[SaleItem]:
        if not products:
            raise ValueError("No hay productos para agregar")
        org_id = self.ctx.require_organization()
        branch_id = self.ctx.require_branch()
        sale_id = self._ensure_sale(session_id)

        inserted = (
            self.client.table("sale_items")
            .insert([
                {
                    "sale_id": sale_id,
                    "product_id": p.product_id,
                    "quantity": p.quantity,
                    "unit_price": p.unit_price,
                    "total": p.quantity * p.unit_price,
                    "tax_amount": 0,
                    "discount_amount": 0,
                    "notes": {"product_name": p.product_name, **({"extra": p.notes} if p.notes else {})},
                }
                for p in products
            ])
            .select("*")
            .execute()
        ).data or []

        ticket = (
            self.client.table("kitchen_tickets")
            .insert({
                "organization_id": org_id,
                "branch_id": branch_id,
                "table_session_id": session_id,
                "sale_id": sale_id,
                "status": "new",
                "priority": 0,
            })
            .select("*")
            .single()
            .execute()
        ).data

        (
            self.client.table("kitchen_ticket_items")
            .insert([
                {
                    "organization_id": org_id,
                    "kitchen_ticket_id": ticket["id"],
                    "sale_item_id": item["id"],
                    "station": product.station,
                    "notes": product.notes,
                    "status": "pending",
                }
                for item, product in zip(inserted, products)
            ])
            .execute()
        )

        self.recalculate_sale(sale_id)
        return [SaleItem.from_row(item) for item in inserted]

    @logged("Error recalculando venta")
    def recalculate_sale(self, sale_id: str) -> dict:
        items = (
            self.client.table("sale_items")
            .select("total, tax_amount, discount_amount")
            .eq("sale_id", sale_id)
            .execute()
        ).data or []
        totals = sale_totals(items)
        (
            self.client.table("sales")
            .update({**totals, "balance": totals["total"], "updated_at": utcnow_iso()})
            .eq("id", sale_id)
            .execute()
        )
        return totals

    @logged("Error eliminando item")
    def remove_item(self, item_id: str):
        item = (
            self.client.table("sale_items")
            .select("sale_id")
            .eq("id", item_id)
            .single()
            .execute()
        ).data
        self.client.table("kitchen_ticket_items").delete().eq("sale_item_id", item_id).execute()
        self.client.table("sale_items").delete().eq("id", item_id).execute()
        self.recalculate_sale(item["sale_id"])

    @logged("Error actualizando cantidad")
    def update_item_quantity(self, item_id: str, quantity: float):
        if quantity <= 0:
            raise ValueError("La cantidad debe ser mayor a cero")
        item = (
            self.client.table("sale_items")
            .select("unit_price, sale_id")
            .eq("id", item_id)
            .single()
            .execute()
        ).data
        (
            self.client.table("sale_items")
            .update({"quantity": quantity, "total": float(item["unit_price"]) * quantity})
            .eq("id", item_id)
            .execute()
        )
        self.recalculate_sale(item["sale_id"])

    # ─── Cuenta ───

    @logged("Error generando pre-cuenta")
    def pre_cuenta(self, table_id: str) -> PreCuenta:
        detail = self.get_table_detail(table_id)
        if detail is None or not detail.items:
            raise ValueError("La mesa no tiene productos")
        return compute_pre_cuenta(detail.items)

    @logged("Error solicitando cuenta")
    def request_bill(self, session_id: str):
        (
            self.client.table("table_sessions")
            .update({"status": "bill_requested", "updated_at": utcnow_iso()})
            .eq("id", session_id)
            .execute()
        )

    @logged("Error actualizando comensales")
    def update_customers(self, session_id: str, customers: int):
        if customers < 1:
            raise ValueError("Debe haber al menos un comensal")
        (
            self.client.table("table_sessions")
            .update({"customers": customers, "updated_at": utcnow_iso()})
            .eq("id", session_id)
            .execute()
        )

    # ─── Cocina ───

    @logged("Error enviando a cocina")
    def send_to_kitchen(self, session_id: str):
        """Marca como impresos los tickets aún no impresos de la sesión."""
        (
            self.client.table("kitchen_tickets")
            .update({"printed_at": utcnow_iso()})
            .eq("table_session_id", session_id)
            .is_("printed_at", None)
            .execute()
        )

    @logged("Error obteniendo tickets de cocina")
    def list_kitchen_tickets(self, session_id: str) -> list[KitchenTicket]:
        rows = (
            self.client.table("kitchen_tickets")
            .select("*")
            .eq("table_session_id", session_id)
            .order("created_at", ascending=False)
            .execute()
        ).data or []
        return [KitchenTicket.from_row(row) for row in rows]

    # ─── Transferencia ───

    @logged("Error transfiriendo item")
    def transfer_item(self, item_id: str, to_table_id: str, quantity: float):
        """
        Pasa `quantity` unidades del item a la mesa destino.

        Si se transfiere toda la cantidad se mueve la línea; si no, se crea una
        línea nueva en la venta destino y se reduce la original.
        """
        try:
            item = (
                self.client.table("sale_items")
                .select("*")
                .eq("id", item_id)
                .single()
                .execute()
            ).data
        except DataAccessError as e:
            if e.is_not_found:
                raise ValueError("Item no encontrado") from e
            raise

        dest_sessions = [TableSession.from_row(row) for row in self._table_sessions(to_table_id)]
        if not dest_sessions:
            raise ValueError("Mesa destino no tiene sesión activa")
        dest_sale_id = self._ensure_sale(pick_main_session(dest_sessions).id)

        original_quantity = float(item["quantity"])
        if quantity >= original_quantity:
            (
                self.client.table("sale_items")
                .update({"sale_id": dest_sale_id})
                .eq("id", item_id)
                .execute()
            )
        else:
            unit_price = float(item["unit_price"])
            (
                self.client.table("sale_items")
                .insert({
                    "sale_id": dest_sale_id,
                    "product_id": item.get("product_id"),
                    "quantity": quantity,
                    "unit_price": unit_price,
                    "total": unit_price * quantity,
                    "tax_amount": 0,
                    "discount_amount": 0,
                    "notes": item.get("notes"),
                })
                .execute()
            )
            (
                self.client.table("sale_items")
                .update({
                    "quantity": original_quantity - quantity,
                    "total": unit_price * (original_quantity - quantity),
                })
                .eq("id", item_id)
                .execute()
            )

        self.recalculate_sale(item["sale_id"])
        self.recalculate_sale(dest_sale_id)

    # ─── Métodos de pago ───

    @logged("Error obteniendo métodos de pago")
    def list_payment_methods(self) -> list[PaymentMethod]:
        org_id = self.ctx.require_organization()
        rows = (
            self.client.table("organization_payment_methods")
            .select("""
                *,
                payment_methods(code, name, requires_reference, is_active, is_system)
            """)
            .eq("organization_id", org_id)
            .eq("is_active", True)
            .execute()
        ).data or []
        return [PaymentMethod.from_row(row) for row in rows]
