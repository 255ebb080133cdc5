"""
Cliente HTTP para la API REST de Supabase (PostgREST).

Responsabilidades:
- Autenticación automática (apikey + Bearer token)
- Rate limiting entre requests
- Retry con backoff exponencial
- Constructor de consultas encadenable (filtros, orden, límites)
- Llamadas RPC a funciones de la base de datos
"""

import functools
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import requests

from backoffice.api.auth import SupabaseAuth
from backoffice.config import (
    SUPABASE_URL,
    REST_PATH,
    REQUEST_TIMEOUT,
    MIN_REQUEST_INTERVAL,
    MAX_RETRIES,
    RETRY_BACKOFF,
)

logger = logging.getLogger(__name__)

# Código PostgREST para "se pidió un objeto y hubo 0 (o varias) filas"
NOT_FOUND_CODE = "PGRST116"

OBJECT_MEDIA_TYPE = "application/vnd.pgrst.object+json"
RETRYABLE_STATUS = (429, 500, 502, 503, 504)


class DataAccessError(Exception):
    """Error devuelto por la base de datos o por la capa HTTP."""

    def __init__(
        self,
        message: str,
        code: str = None,
        details: str = None,
        hint: str = None,
        status: int = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details
        self.hint = hint
        self.status = status

    @property
    def is_not_found(self) -> bool:
        return self.code == NOT_FOUND_CODE

    @classmethod
    def from_response(cls, resp: requests.Response) -> "DataAccessError":
        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        return cls(
            body.get("message") or f"HTTP {resp.status_code}",
            code=body.get("code"),
            details=body.get("details"),
            hint=body.get("hint"),
            status=resp.status_code,
        )


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def logged(message: str):
    """Registra el error con `message` y lo propaga sin modificarlo."""
    def decorator(func):
        log = logging.getLogger(func.__module__)

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception:
                log.exception(message)
                raise
        return wrapper
    return decorator


def _format_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _format_list_value(value: Any) -> str:
    text = _format_value(value)
    if any(ch in text for ch in ',()"'):
        text = '"' + text.replace('"', '\\"') + '"'
    return text


def _compact(columns: str) -> str:
    """Elimina espacios y saltos de línea de un select con relaciones embebidas."""
    return "".join(columns.split())


@dataclass
class APIResponse:
    data: Any = None
    count: int | None = None


class Query:
    """Consulta encadenable sobre una tabla. Se ejecuta con `execute()`."""

    def __init__(self, client: "SupabaseClient", table: str):
        self.client = client
        self.table = table
        self.method: str | None = None
        self.params: list[tuple[str, str]] = []
        self.body: Any = None
        self.headers: dict[str, str] = {}
        self.prefer: list[str] = []
        self.mode = "many"

    # ─── Verbos ───

    def select(self, columns: str = "*", count: str = None, head: bool = False) -> "Query":
        self.params.append(("select", _compact(columns)))
        if count:
            self.prefer.append(f"count={count}")
        if head:
            self.method = "HEAD"
        return self

    def insert(self, rows: dict | list) -> "Query":
        self.method = "POST"
        self.body = rows
        self.prefer.append("return=representation")
        return self

    def update(self, values: dict) -> "Query":
        self.method = "PATCH"
        self.body = values
        self.prefer.append("return=representation")
        return self

    def delete(self) -> "Query":
        self.method = "DELETE"
        self.prefer.append("return=representation")
        return self

    # ─── Filtros ───

    def _filter(self, column: str, operator: str, value: Any) -> "Query":
        self.params.append((column, f"{operator}.{_format_value(value)}"))
        return self

    def eq(self, column: str, value: Any) -> "Query":
        return self._filter(column, "eq", value)

    def neq(self, column: str, value: Any) -> "Query":
        return self._filter(column, "neq", value)

    def gt(self, column: str, value: Any) -> "Query":
        return self._filter(column, "gt", value)

    def gte(self, column: str, value: Any) -> "Query":
        return self._filter(column, "gte", value)

    def lt(self, column: str, value: Any) -> "Query":
        return self._filter(column, "lt", value)

    def lte(self, column: str, value: Any) -> "Query":
        return self._filter(column, "lte", value)

    def ilike(self, column: str, pattern: str) -> "Query":
        return self._filter(column, "ilike", pattern)

    def is_(self, column: str, value: Any) -> "Query":
        return self._filter(column, "is", value)

    def not_is(self, column: str, value: Any) -> "Query":
        return self._filter(column, "not.is", value)

    def in_(self, column: str, values) -> "Query":
        joined = ",".join(_format_list_value(v) for v in values)
        self.params.append((column, f"in.({joined})"))
        return self

    def or_(self, expression: str) -> "Query":
        self.params.append(("or", f"({expression})"))
        return self

    # ─── Modificadores ───

    def order(self, column: str, ascending: bool = True) -> "Query":
        self.params.append(("order", f"{column}.{'asc' if ascending else 'desc'}"))
        return self

    def limit(self, count: int) -> "Query":
        self.params.append(("limit", str(count)))
        return self

    def single(self) -> "Query":
        self.mode = "single"
        self.headers["Accept"] = OBJECT_MEDIA_TYPE
        return self

    def maybe_single(self) -> "Query":
        self.mode = "maybe_single"
        return self

    def execute(self) -> APIResponse:
        return self.client.execute(self)


class SupabaseClient:
    """Cliente de bajo nivel para PostgREST."""

    def __init__(
        self,
        auth: SupabaseAuth = None,
        base_url: str = None,
        session: requests.Session = None,
    ):
        self.auth = auth or SupabaseAuth()
        self.base_url = (base_url or SUPABASE_URL).rstrip("/")
        if not self.base_url:
            raise ValueError(
                "SUPABASE_URL es obligatorio. Defínalo en el .env o en st.secrets"
            )
        self.session = session or requests.Session()
        self._last_request_time = 0.0

    # ─── HTTP primitivos ───

    def _get_headers(self) -> dict:
        return {
            "apikey": self.auth.api_key,
            "Authorization": f"Bearer {self.auth.get_access_token()}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _throttle(self):
        elapsed = time.time() - self._last_request_time
        if elapsed < MIN_REQUEST_INTERVAL:
            time.sleep(MIN_REQUEST_INTERVAL - elapsed)
        self._last_request_time = time.time()

    def _request(self, method: str, path: str, headers: dict = None, **kwargs) -> requests.Response:
        last_error = None
        for attempt in range(MAX_RETRIES):
            self._throttle()
            request_headers = self._get_headers()
            request_headers.update(headers or {})
            try:
                resp = self.session.request(
                    method,
                    f"{self.base_url}{path}",
                    headers=request_headers,
                    timeout=REQUEST_TIMEOUT,
                    **kwargs,
                )
            except requests.exceptions.ConnectionError as e:
                last_error = DataAccessError(f"Error de conexión: {e}")
                time.sleep(RETRY_BACKOFF * (2 ** attempt))
                continue

            if resp.status_code < 400:
                return resp

            # 401 → token expiró, intenta refresh una vez
            if resp.status_code == 401 and attempt == 0 and self.auth.can_refresh():
                self.auth.refresh()
                continue
            # 429 / 5xx → retry con backoff
            if resp.status_code in RETRYABLE_STATUS:
                last_error = DataAccessError.from_response(resp)
                time.sleep(RETRY_BACKOFF * (2 ** attempt))
                continue
            raise DataAccessError.from_response(resp)

        raise last_error

    # ─── Consultas ───

    def table(self, name: str) -> Query:
        return Query(self, name)

    def execute(self, query: Query) -> APIResponse:
        headers = dict(query.headers)
        if query.prefer:
            headers["Prefer"] = ",".join(query.prefer)

        kwargs = {"params": query.params}
        if query.body is not None:
            kwargs["json"] = query.body

        resp = self._request(
            query.method or "GET",
            f"{REST_PATH}/{query.table}",
            headers=headers,
            **kwargs,
        )

        count = _parse_count(resp.headers.get("Content-Range"))
        if query.method == "HEAD" or not resp.content:
            return APIResponse(data=None, count=count)

        data = resp.json()
        if query.mode == "maybe_single":
            rows = data if isinstance(data, list) else [data]
            if len(rows) > 1:
                raise DataAccessError(
                    "Se esperaba una fila y se obtuvieron varias",
                    code=NOT_FOUND_CODE,
                    status=406,
                )
            data = rows[0] if rows else None
        return APIResponse(data=data, count=count)

    def rpc(self, function: str, params: dict = None) -> APIResponse:
        """Ejecuta una función de la base de datos (POST /rpc/<function>)."""
        resp = self._request("POST", f"{REST_PATH}/rpc/{function}", json=params or {})
        if not resp.content:
            return APIResponse(data=None)
        return APIResponse(data=resp.json())


def _parse_count(content_range: str | None) -> int | None:
    # Formatos: "0-24/3573", "*/0", "0-24/*"
    if not content_range or "/" not in content_range:
        return None
    total = content_range.rsplit("/", 1)[1]
    return int(total) if total.isdigit() else None
