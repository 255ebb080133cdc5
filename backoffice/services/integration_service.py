"""
Servicio de Integraciones.

Estadísticas de conexiones por estado y ambiente, y acciones permitidas
según el ciclo de vida (revoked es terminal).
"""

from backoffice.models.integration_models import ConnectionStats, IntegrationConnection

CONNECTION_STATUSES = ("draft", "connected", "paused", "error", "revoked")
ENVIRONMENTS = ("production", "sandbox", "test")


def connection_stats(connections: list[IntegrationConnection]) -> ConnectionStats:
    stats = ConnectionStats(
        by_status={s: 0 for s in CONNECTION_STATUSES},
        by_environment={e: 0 for e in ENVIRONMENTS},
    )
    for conn in connections:
        stats.total += 1
        stats.by_status[conn.status] = stats.by_status.get(conn.status, 0) + 1
        stats.by_environment[conn.environment] = stats.by_environment.get(conn.environment, 0) + 1
        stats.errors_24h += conn.error_count_24h
    return stats


def allowed_actions(connection: IntegrationConnection) -> set[str]:
    """Acciones de la vista. Una conexión revocada no admite ninguna."""
    if connection.is_revoked:
        return set()
    actions = {"revoke", "delete", "health_check", "edit", "duplicate"}
    if connection.status == "paused":
        actions.add("resume")
    else:
        actions.add("pause")
    return actions


def filter_connections(
    connections: list[IntegrationConnection],
    status: str = "all",
    environment: str = "all",
    provider_id: str = None,
    search: str = None,
) -> list[IntegrationConnection]:
    term = (search or "").lower()
    result = []
    for conn in connections:
        if status != "all" and conn.status != status:
            continue
        if environment != "all" and conn.environment != environment:
            continue
        if provider_id and conn.provider_id != provider_id:
            continue
        if term and term not in conn.name.lower():
            continue
        result.append(conn)
    return result
