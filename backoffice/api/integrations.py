"""
Acceso a datos de integraciones: proveedores, conectores y conexiones.

El ciclo de vida de una conexión es draft → connected ⇄ paused, con error
como estado transitorio y revoked como estado terminal.
"""

import logging

from backoffice.api.context import TenantContext
from backoffice.api.supabase_client import SupabaseClient, DataAccessError, logged, utcnow_iso
from backoffice.models.integration_models import (
    IntegrationConnection,
    IntegrationConnector,
    IntegrationProvider,
)

logger = logging.getLogger(__name__)

CONNECTION_SELECT = """
    *,
    connector:integration_connectors(
        id, code, name, capabilities,
        provider:integration_providers(id, code, name, category, logo_url)
    )
"""


class ConnectionRevokedError(ValueError):
    """La conexión fue revocada y no admite más cambios de estado."""


class IntegrationsAPI:
    def __init__(self, client: SupabaseClient, ctx: TenantContext):
        self.client = client
        self.ctx = ctx

    # ─── Conexiones ───

    @logged("Error obteniendo conexiones")
    def list_connections(
        self,
        status: str = None,
        environment: str = None,
        country_code: str = None,
        branch_id: int = None,
        provider_id: str = None,
        search: str = None,
    ) -> list[IntegrationConnection]:
        org_id = self.ctx.require_organization()
        query = (
            self.client.table("integration_connections")
            .select(CONNECTION_SELECT)
            .eq("organization_id", org_id)
            .order("created_at", ascending=False)
        )
        if status:
            query = query.eq("status", status)
        if environment:
            query = query.eq("environment", environment)
        if country_code:
            query = query.eq("country_code", country_code)
        if branch_id:
            query = query.eq("branch_id", branch_id)
        if search:
            query = query.ilike("name", f"%{search}%")

        connections = [IntegrationConnection.from_row(row) for row in query.execute().data or []]
        # El proveedor está dos niveles embebido; se filtra en el cliente
        if provider_id:
            connections = [c for c in connections if c.provider_id == provider_id]
        return connections

    @logged("Error obteniendo conexión")
    def get_connection(self, connection_id: str) -> IntegrationConnection | None:
        org_id = self.ctx.require_organization()
        try:
            resp = (
                self.client.table("integration_connections")
                .select(CONNECTION_SELECT)
                .eq("id", connection_id)
                .eq("organization_id", org_id)
                .single()
                .execute()
            )
        except DataAccessError as e:
            if e.is_not_found:
                return None
            raise
        return IntegrationConnection.from_row(resp.data)

    @logged("Error creando conexión")
    def create_connection(self, data: dict) -> IntegrationConnection:
        org_id = self.ctx.require_organization()
        now = utcnow_iso()
        resp = (
            self.client.table("integration_connections")
            .insert({
                "organization_id": org_id,
                "connector_id": data["connector_id"],
                "name": data["name"],
                "environment": data.get("environment") or "production",
                "branch_id": data.get("branch_id"),
                "country_code": data.get("country_code"),
                "settings": data.get("settings") or {},
                "status": "draft",
                "created_by": self.ctx.user_id,
                "created_at": now,
                "updated_at": now,
            })
            .select(CONNECTION_SELECT)
            .single()
            .execute()
        )
        return IntegrationConnection.from_row(resp.data)

    @logged("Error actualizando conexión")
    def update_connection(self, connection_id: str, updates: dict):
        (
            self.client.table("integration_connections")
            .update({**updates, "updated_at": utcnow_iso()})
            .eq("id", connection_id)
            .execute()
        )

    @logged("Error duplicando conexión")
    def duplicate_connection(self, connection_id: str) -> IntegrationConnection:
        """Copia la configuración en una conexión nueva en borrador (sin credenciales)."""
        source = self.get_connection(connection_id)
        if source is None:
            raise ValueError(f"Conexión no encontrada: {connection_id}")
        return self.create_connection({
            "connector_id": source.connector_id,
            "name": f"{source.name} (copia)",
            "environment": source.environment,
            "branch_id": source.branch_id,
            "country_code": source.country_code,
            "settings": dict(source.settings),
        })

    # ─── Ciclo de vida ───

    def _set_status(self, connection_id: str, status: str, **extra):
        current = self.get_connection(connection_id)
        if current is None:
            raise ValueError(f"Conexión no encontrada: {connection_id}")
        if current.is_revoked:
            raise ConnectionRevokedError("La conexión está revocada")
        (
            self.client.table("integration_connections")
            .update({"status": status, "updated_at": utcnow_iso(), **extra})
            .eq("id", connection_id)
            .execute()
        )

    @logged("Error pausando conexión")
    def pause_connection(self, connection_id: str):
        self._set_status(connection_id, "paused")

    @logged("Error reanudando conexión")
    def resume_connection(self, connection_id: str):
        self._set_status(connection_id, "connected")

    @logged("Error revocando conexión")
    def revoke_connection(self, connection_id: str):
        self._set_status(connection_id, "revoked")

    @logged("Error eliminando conexión")
    def delete_connection(self, connection_id: str):
        """Borrado lógico: la conexión queda revocada y conserva su historial."""
        self._set_status(connection_id, "revoked")

    @logged("Error en health check")
    def health_check(self, connection_id: str) -> str:
        now = utcnow_iso()
        (
            self.client.table("integration_connections")
            .update({"last_health_check_at": now, "updated_at": now})
            .eq("id", connection_id)
            .execute()
        )
        return now

    # ─── Catálogo ───

    @logged("Error obteniendo proveedores")
    def list_providers(self) -> list[IntegrationProvider]:
        rows = (
            self.client.table("integration_providers")
            .select("*")
            .eq("is_active", True)
            .order("name")
            .execute()
        ).data or []
        return [IntegrationProvider.from_row(row) for row in rows]

    @logged("Error obteniendo conectores")
    def list_connectors(self, provider_id: str = None) -> list[IntegrationConnector]:
        query = (
            self.client.table("integration_connectors")
            .select("*, provider:integration_providers(*)")
            .eq("is_active", True)
            .order("name")
        )
        if provider_id:
            query = query.eq("provider_id", provider_id)
        return [IntegrationConnector.from_row(row) for row in query.execute().data or []]
