import itertools
import json
import re

import pytest
import requests

from backoffice.api import supabase_client
from backoffice.api.context import TenantContext
from backoffice.api.supabase_client import OBJECT_MEDIA_TYPE, SupabaseClient

BASE_URL = "http://supabase.test"
REST_PREFIX = "/rest/v1/"


def _text(value):
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _equals(stored, raw: str) -> bool:
    if _text(stored) == raw:
        return True
    try:
        return float(stored) == float(raw)
    except (TypeError, ValueError):
        return False


def _compare(stored, raw: str):
    try:
        return float(stored), float(raw)
    except (TypeError, ValueError):
        return str(stored), raw


def _split_list(raw: str) -> list[str]:
    return [v.strip().strip('"') for v in raw.strip("()").split(",") if v.strip()]


def _matches(row: dict, column: str, expr: str) -> bool:
    op, _, raw = expr.partition(".")
    if op == "not":
        return not _matches(row, column, raw)
    stored = row.get(column)
    if op == "eq":
        return _equals(stored, raw)
    if op == "neq":
        return not _equals(stored, raw)
    if op == "is":
        return _text(stored) == raw
    if op == "in":
        return any(_equals(stored, v) for v in _split_list(raw))
    if op == "ilike":
        if stored is None:
            return False
        pattern = "^" + ".*".join(re.escape(p) for p in raw.split("%")) + "$"
        return re.match(pattern, str(stored), re.IGNORECASE) is not None
    if op in ("gt", "gte", "lt", "lte"):
        if stored is None:
            return False
        a, b = _compare(stored, raw)
        return {"gt": a > b, "gte": a >= b, "lt": a < b, "lte": a <= b}[op]
    raise AssertionError(f"Operador no soportado por el fake: {op}")


def _matches_or(row: dict, raw: str) -> bool:
    for part in _split_list(raw):
        column, _, expr = part.partition(".")
        if _matches(row, column, expr):
            return True
    return False


def make_response(status: int, body=None, headers: dict = None) -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    resp.encoding = "utf-8"
    resp._content = b"" if body is None else json.dumps(body).encode("utf-8")
    resp.headers.update(headers or {})
    return resp


class FakePostgrest:
    """
    Sesión HTTP en memoria que responde como PostgREST.

    Se pasa como `session` a SupabaseClient. Las relaciones embebidas no se
    resuelven: las filas de prueba ya traen las claves anidadas que necesitan.
    """

    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.rpcs: dict = {}
        self.requests: list[tuple] = []
        self.hooks: list = []
        self._ids = itertools.count(1000)

    # ─── Preparación ───

    def seed(self, table: str, *rows: dict) -> list[dict]:
        stored = self.tables.setdefault(table, [])
        for row in rows:
            stored.append(dict(row))
        return stored

    def rows(self, table: str) -> list[dict]:
        return self.tables.setdefault(table, [])

    def row(self, table: str, row_id) -> dict:
        return next(r for r in self.rows(table) if _equals(r.get("id"), str(row_id)))

    def register_rpc(self, name: str, handler):
        self.rpcs[name] = handler

    def calls(self, method: str = None, table: str = None) -> list[tuple]:
        return [
            c for c in self.requests
            if (method is None or c[0] == method) and (table is None or c[1] == table)
        ]

    # ─── requests.Session ───

    def request(self, method, url, headers=None, params=None, json=None, timeout=None):
        headers = headers or {}
        params = list(params or [])
        assert url.startswith(BASE_URL + REST_PREFIX), url
        target = url[len(BASE_URL + REST_PREFIX):]
        self.requests.append((method, target, params, json))
        for hook in self.hooks:
            hook(self, method, target, params, json)

        if target.startswith("rpc/"):
            return self._rpc(target[len("rpc/"):], json or {})
        return self._table(method, target, headers, params, json)

    def _rpc(self, name: str, payload: dict) -> requests.Response:
        handler = self.rpcs.get(name)
        if handler is None:
            return make_response(404, {"code": "PGRST202", "message": f"Could not find the function {name}"})
        result = handler(payload)
        if isinstance(result, requests.Response):
            return result
        return make_response(200, result)

    def _filtered(self, table: str, params: list[tuple]) -> list[dict]:
        result = []
        for row in self.rows(table):
            ok = True
            for column, expr in params:
                if column in ("select", "order", "limit"):
                    continue
                if column == "or":
                    ok = _matches_or(row, expr)
                else:
                    ok = _matches(row, column, expr)
                if not ok:
                    break
            if ok:
                result.append(row)
        return result

    def _table(self, method, table, headers, params, body) -> requests.Response:
        prefer = headers.get("Prefer", "")
        if method in ("GET", "HEAD"):
            rows = [dict(r) for r in self._filtered(table, params)]
            for column, expr in reversed([p for p in params if p[0] == "order"]):
                col, _, direction = expr.rpartition(".")
                present = [r for r in rows if r.get(col) is not None]
                missing = [r for r in rows if r.get(col) is None]
                present.sort(key=lambda r: r[col], reverse=direction == "desc")
                rows = present + missing
            for column, expr in params:
                if column == "limit":
                    rows = rows[:int(expr)]
        elif method == "POST":
            new_rows = body if isinstance(body, list) else [body]
            rows = []
            for new in new_rows:
                stored = dict(new)
                stored.setdefault("id", next(self._ids))
                self.rows(table).append(stored)
                rows.append(dict(stored))
        elif method == "PATCH":
            matched = self._filtered(table, params)
            for row in matched:
                row.update(body)
            rows = [dict(r) for r in matched]
        elif method == "DELETE":
            matched = self._filtered(table, params)
            self.tables[table] = [r for r in self.rows(table) if r not in matched]
            rows = [dict(r) for r in matched]
        else:
            raise AssertionError(f"Método no soportado por el fake: {method}")

        response_headers = {}
        if "count=exact" in prefer:
            total = len(rows)
            response_headers["Content-Range"] = f"0-{total - 1}/{total}" if total else "*/0"
        if method == "HEAD":
            return make_response(200, None, response_headers)

        if headers.get("Accept") == OBJECT_MEDIA_TYPE:
            if len(rows) != 1:
                return make_response(406, {
                    "code": "PGRST116",
                    "message": "JSON object requested, multiple (or no) rows returned",
                    "details": f"The result contains {len(rows)} rows",
                })
            return make_response(200, rows[0], response_headers)

        status = 201 if method == "POST" else 200
        return make_response(status, rows, response_headers)


class StubAuth:
    api_key = "anon-key"

    def get_access_token(self) -> str:
        return "test-token"

    def can_refresh(self) -> bool:
        return False

    def refresh(self):
        raise AssertionError("refresh no esperado")


@pytest.fixture(autouse=True)
def no_throttle(monkeypatch):
    monkeypatch.setattr(supabase_client, "MIN_REQUEST_INTERVAL", 0)
    monkeypatch.setattr(supabase_client, "RETRY_BACKOFF", 0)


@pytest.fixture
def fake():
    return FakePostgrest()


@pytest.fixture
def client(fake):
    return SupabaseClient(auth=StubAuth(), base_url=BASE_URL, session=fake)


@pytest.fixture
def ctx():
    return TenantContext(organization_id=1, branch_id=10, user_id="user-1")
