import pytest

from backoffice.api.integrations import ConnectionRevokedError, IntegrationsAPI
from backoffice.api.supabase_client import DataAccessError
from conftest import make_response


@pytest.fixture
def api(client, ctx):
    return IntegrationsAPI(client, ctx)


def _connection(conn_id, name="Wompi", status="connected", provider_id="p1", **extra):
    row = {
        "id": conn_id,
        "organization_id": 1,
        "connector_id": "k1",
        "name": name,
        "status": status,
        "environment": "production",
        "created_at": f"2024-06-0{conn_id[-1]}T00:00:00Z",
        "connector": {
            "id": "k1",
            "code": "pagos",
            "name": "Pagos",
            "provider": {"id": provider_id, "code": "wompi", "name": "Wompi"},
        },
    }
    row.update(extra)
    return row


def test_list_connections_filters_and_orders_newest_first(api, fake):
    fake.seed(
        "integration_connections",
        _connection("c1", name="Wompi Producción"),
        _connection("c2", name="Wompi Pruebas", environment="sandbox"),
        _connection("c3", name="Siigo", provider_id="p2"),
        _connection("c4", name="Otra org", organization_id=2),
    )

    assert [c.id for c in api.list_connections()] == ["c3", "c2", "c1"]
    assert [c.id for c in api.list_connections(environment="sandbox")] == ["c2"]
    assert [c.id for c in api.list_connections(search="wompi")] == ["c2", "c1"]
    assert [c.id for c in api.list_connections(provider_id="p2")] == ["c3"]


def test_create_connection_starts_in_draft(api, fake):
    fake.seed("integration_connectors", {"id": "k1", "code": "pagos", "name": "Pagos"})
    conn = api.create_connection({"connector_id": "k1", "name": "Nueva"})
    assert conn.status == "draft"
    assert conn.environment == "production"


def test_duplicate_connection_copies_settings_as_draft(api, fake):
    fake.seed("integration_connections", _connection("c1", settings={"merchant": "123"}, country_code="CO"))

    copy = api.duplicate_connection("c1")

    assert copy.status == "draft"
    assert copy.name == "Wompi (copia)"
    assert copy.settings == {"merchant": "123"}
    assert copy.country_code == "CO"
    assert len(fake.rows("integration_connections")) == 2


def test_pause_resume_lifecycle(api, fake):
    fake.seed("integration_connections", _connection("c1"))
    api.pause_connection("c1")
    assert fake.row("integration_connections", "c1")["status"] == "paused"
    api.resume_connection("c1")
    assert fake.row("integration_connections", "c1")["status"] == "connected"


def test_revoked_connection_is_terminal(api, fake):
    fake.seed("integration_connections", _connection("c1"))
    api.revoke_connection("c1")

    for action in (api.pause_connection, api.resume_connection, api.revoke_connection):
        with pytest.raises(ConnectionRevokedError):
            action("c1")
    assert fake.row("integration_connections", "c1")["status"] == "revoked"


def test_delete_connection_revokes_and_keeps_row(api, fake):
    fake.seed("integration_connections", _connection("c1"), _connection("c2"))

    api.delete_connection("c1")

    assert fake.row("integration_connections", "c1")["status"] == "revoked"
    assert len(fake.rows("integration_connections")) == 2
    with pytest.raises(ConnectionRevokedError):
        api.delete_connection("c1")


def test_health_check_records_timestamp(api, fake):
    fake.seed("integration_connections", _connection("c1"))
    checked_at = api.health_check("c1")
    assert fake.row("integration_connections", "c1")["last_health_check_at"] == checked_at


def test_get_connection_missing_returns_none(api, fake):
    assert api.get_connection("c9") is None


def test_catalog_lists_active_entries(api, fake):
    fake.seed(
        "integration_providers",
        {"id": "p2", "code": "siigo", "name": "Siigo", "is_active": True},
        {"id": "p1", "code": "wompi", "name": "Wompi", "is_active": True},
        {"id": "p3", "code": "old", "name": "Antiguo", "is_active": False},
    )
    fake.seed(
        "integration_connectors",
        {"id": "k1", "provider_id": "p1", "code": "pagos", "name": "Pagos", "is_active": True},
        {"id": "k2", "provider_id": "p2", "code": "facturas", "name": "Facturas", "is_active": True},
    )
    assert [p.code for p in api.list_providers()] == ["siigo", "wompi"]
    assert [k.id for k in api.list_connectors("p1")] == ["k1"]
    assert len(api.list_connectors()) == 2


def test_errors_are_raised_not_swallowed(api, fake):
    original = fake._table

    def broken(method, table, headers, params, body):
        if table == "integration_connections":
            return make_response(500, {"message": "boom"})
        return original(method, table, headers, params, body)

    fake._table = broken
    with pytest.raises(DataAccessError):
        api.list_connections()
