"""
Acceso a datos de mesas del restaurante y sus sesiones.

Tablas: restaurant_tables, table_sessions, sale_items (solo conteo).

Las operaciones de varios pasos (combinar, dividir, mover) no son atómicas:
si un paso falla los anteriores quedan aplicados.
"""

import logging

from backoffice.api.context import TenantContext
from backoffice.api.supabase_client import SupabaseClient, DataAccessError, logged, utcnow_iso
from backoffice.config import ACTIVE_SESSION_STATUSES
from backoffice.models.pos_models import RestaurantTable, TableForm, TableSession, TableWithSession
from backoffice.services.table_service import TABLE_STATES, consolidate_tables

logger = logging.getLogger(__name__)


class ActiveSessionError(ValueError):
    """La mesa ya tiene una sesión activa."""


class TablesAPI:
    def __init__(self, client: SupabaseClient, ctx: TenantContext):
        self.client = client
        self.ctx = ctx

    # ─── Lectura ───

    def _active_sessions(self, table_ids: list[str]) -> list[TableSession]:
        if not table_ids:
            return []
        rows = (
            self.client.table("table_sessions")
            .select("*")
            .in_("restaurant_table_id", table_ids)
            .in_("status", ACTIVE_SESSION_STATUSES)
            .execute()
        ).data or []
        return [TableSession.from_row(row) for row in rows]

    @logged("Error obteniendo mesas")
    def list_tables_with_sessions(self) -> list[TableWithSession]:
        org_id = self.ctx.require_organization()
        branch_id = self.ctx.require_branch()

        tables = [
            RestaurantTable.from_row(row)
            for row in (
                self.client.table("restaurant_tables")
                .select("*")
                .eq("organization_id", org_id)
                .eq("branch_id", branch_id)
                .order("name")
                .execute()
            ).data or []
        ]
        sessions = self._active_sessions([t.id for t in tables])

        items_by_sale: dict[str, int] = {}
        sale_ids = sorted({s.sale_id for s in sessions if s.sale_id})
        if sale_ids:
            items = (
                self.client.table("sale_items")
                .select("sale_id, id")
                .in_("sale_id", sale_ids)
                .execute()
            ).data or []
            for item in items:
                items_by_sale[item["sale_id"]] = items_by_sale.get(item["sale_id"], 0) + 1

        return consolidate_tables(tables, sessions, items_by_sale)

    # ─── CRUD de mesas ───

    @logged("Error creando mesa")
    def create_table(self, form: TableForm) -> RestaurantTable:
        org_id = self.ctx.require_organization()
        branch_id = self.ctx.require_branch()
        resp = (
            self.client.table("restaurant_tables")
            .insert({
                "organization_id": org_id,
                "branch_id": branch_id,
                "name": form.name,
                "capacity": form.capacity,
                "zone": form.zone or None,
                "position_x": form.position_x,
                "position_y": form.position_y,
                "state": "free",
            })
            .select("*")
            .single()
            .execute()
        )
        return RestaurantTable.from_row(resp.data)

    @logged("Error actualizando mesa")
    def update_table(self, table_id: str, form: TableForm):
        (
            self.client.table("restaurant_tables")
            .update({
                "name": form.name,
                "capacity": form.capacity,
                "zone": form.zone or None,
                "position_x": form.position_x,
                "position_y": form.position_y,
                "updated_at": utcnow_iso(),
            })
            .eq("id", table_id)
            .execute()
        )

    @logged("Error eliminando mesa")
    def delete_table(self, table_id: str):
        if self._active_sessions([table_id]):
            raise ActiveSessionError("No se puede eliminar una mesa con una sesión activa")
        self.client.table("restaurant_tables").delete().eq("id", table_id).execute()

    def _set_state(self, table_id: str, state: str):
        if state not in TABLE_STATES:
            raise ValueError(f"Estado de mesa inválido: {state}")
        (
            self.client.table("restaurant_tables")
            .update({"state": state, "updated_at": utcnow_iso()})
            .eq("id", table_id)
            .execute()
        )

    @logged("Error cambiando estado de mesa")
    def set_table_state(self, table_id: str, state: str):
        self._set_state(table_id, state)

    # ─── Sesiones ───

    @logged("Error abriendo mesa")
    def open_session(self, table_id: str, server_id: str = None, customers: int = 2) -> TableSession:
        org_id = self.ctx.require_organization()
        if self._active_sessions([table_id]):
            raise ActiveSessionError("La mesa ya tiene una sesión activa")

        resp = (
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
        self._set_state(table_id, "occupied")
        return TableSession.from_row(resp.data)

    @logged("Error cambiando mesero")
    def change_server(self, session_id: str, server_id: str):
        (
            self.client.table("table_sessions")
            .update({"server_id": server_id, "updated_at": utcnow_iso()})
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

    def _close_session(self, session_id: str, now: str):
        (
            self.client.table("table_sessions")
            .update({"status": "completed", "closed_at": now, "updated_at": now})
            .eq("id", session_id)
            .execute()
        )

    # ─── Zonas ───

    @logged("Error obteniendo zonas")
    def list_zones(self) -> list[str]:
        org_id = self.ctx.require_organization()
        branch_id = self.ctx.require_branch()
        rows = (
            self.client.table("restaurant_tables")
            .select("zone")
            .eq("organization_id", org_id)
            .eq("branch_id", branch_id)
            .not_is("zone", None)
            .execute()
        ).data or []
        return sorted({row["zone"] for row in rows if row.get("zone")})

    @logged("Error renombrando zona")
    def rename_zone(self, old_name: str, new_name: str):
        org_id = self.ctx.require_organization()
        branch_id = self.ctx.require_branch()
        (
            self.client.table("restaurant_tables")
            .update({"zone": new_name, "updated_at": utcnow_iso()})
            .eq("organization_id", org_id)
            .eq("branch_id", branch_id)
            .eq("zone", old_name)
            .execute()
        )

    @logged("Error eliminando zona")
    def delete_zone(self, zone: str):
        """Las mesas de la zona quedan sin zona; no se eliminan."""
        org_id = self.ctx.require_organization()
        branch_id = self.ctx.require_branch()
        (
            self.client.table("restaurant_tables")
            .update({"zone": None, "updated_at": utcnow_iso()})
            .eq("organization_id", org_id)
            .eq("branch_id", branch_id)
            .eq("zone", zone)
            .execute()
        )

    # ─── Combinar / dividir / mover ───

    @logged("Error combinando mesas")
    def combine_tables(self, main_table_id: str, table_ids: list[str]) -> int:
        """
        Mueve las sesiones activas de `table_ids` a la mesa principal.

        Las mesas origen quedan libres. Retorna la cantidad de sesiones movidas.
        """
        others = [t for t in table_ids if t != main_table_id]
        sessions = self._active_sessions(others)
        if not sessions:
            raise ValueError("Las mesas seleccionadas no tienen sesiones activas")

        now = utcnow_iso()
        for session in sessions:
            (
                self.client.table("table_sessions")
                .update({"restaurant_table_id": main_table_id, "updated_at": now})
                .eq("id", session.id)
                .execute()
            )
        for table_id in others:
            self._set_state(table_id, "free")
        self._set_state(main_table_id, "occupied")
        return len(sessions)

    @logged("Error dividiendo mesa")
    def split_table(self, origin_table_id: str, dest_table_ids: list[str], session_id: str) -> list[TableSession]:
        """
        Reparte los comensales de la sesión entre las mesas destino.

        Cada destino recibe floor(comensales / N) (mínimo 1). La sesión original
        se cierra y la mesa origen queda libre. Los items no se mueven.
        """
        if not dest_table_ids:
            raise ValueError("Debe seleccionar al menos una mesa destino")
        org_id = self.ctx.require_organization()

        try:
            origin = (
                self.client.table("table_sessions")
                .select("*")
                .eq("id", session_id)
                .single()
                .execute()
            ).data
        except DataAccessError as e:
            if e.is_not_found:
                raise ValueError("Sesión no encontrada") from e
            raise
        origin_table = (
            self.client.table("restaurant_tables")
            .select("name")
            .eq("id", origin_table_id)
            .maybe_single()
            .execute()
        ).data or {}

        customers = max(1, (origin.get("customers") or 0) // len(dest_table_ids))
        now = utcnow_iso()
        created = []
        for dest_id in dest_table_ids:
            resp = (
                self.client.table("table_sessions")
                .insert({
                    "organization_id": org_id,
                    "restaurant_table_id": dest_id,
                    "server_id": origin.get("server_id"),
                    "customers": customers,
                    "status": "active",
                    "opened_at": now,
                    "notes": f"Dividida desde mesa {origin_table.get('name') or origin_table_id}",
                })
                .select("*")
                .single()
                .execute()
            )
            created.append(TableSession.from_row(resp.data))
            self._set_state(dest_id, "occupied")

        self._close_session(session_id, now)
        self._set_state(origin_table_id, "free")
        return created

    @logged("Error moviendo orden")
    def move_order(self, session_id: str, dest_table_id: str):
        """Mueve la sesión (y su venta) a otra mesa libre."""
        if self._active_sessions([dest_table_id]):
            raise ActiveSessionError("La mesa destino ya tiene una sesión activa")
        session = (
            self.client.table("table_sessions")
            .select("restaurant_table_id")
            .eq("id", session_id)
            .single()
            .execute()
        ).data

        (
            self.client.table("table_sessions")
            .update({"restaurant_table_id": dest_table_id, "updated_at": utcnow_iso()})
            .eq("id", session_id)
            .execute()
        )
        self._set_state(session["restaurant_table_id"], "free")
        self._set_state(dest_table_id, "occupied")

    @logged("Error liberando mesa")
    def release_table(self, table_id: str) -> int:
        """Cierra todas las sesiones activas de la mesa y la deja libre."""
        table = (
            self.client.table("restaurant_tables")
            .select("id")
            .eq("id", table_id)
            .maybe_single()
            .execute()
        ).data
        if table is None:
            raise ValueError(f"Mesa no encontrada: {table_id}")

        sessions = self._active_sessions([table_id])
        now = utcnow_iso()
        for session in sessions:
            self._close_session(session.id, now)
        self._set_state(table_id, "free")
        return len(sessions)
