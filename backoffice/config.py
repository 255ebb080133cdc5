"""
Configuración centralizada del back-office.
Carga variables de entorno (.env local) o st.secrets (Streamlit Cloud).
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Carga .env desde la raíz del proyecto (solo local)
PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(PROJECT_ROOT / ".env")


def _get_secret(key: str, default: str = None) -> str | None:
    """Busca config en st.secrets (Cloud) u os.environ (.env local)."""
    try:
        import streamlit as st
        if hasattr(st, "secrets") and key in st.secrets:
            return st.secrets[key]
    except Exception:
        pass
    return os.getenv(key, default)


def _get_int(key: str) -> int | None:
    value = _get_secret(key)
    if value in (None, ""):
        return None
    return int(value)


# ─── Supabase ───

SUPABASE_URL = (_get_secret("SUPABASE_URL", "") or "").rstrip("/")
SUPABASE_ANON_KEY = _get_secret("SUPABASE_ANON_KEY")
SUPABASE_ACCESS_TOKEN = _get_secret("SUPABASE_ACCESS_TOKEN")
SUPABASE_REFRESH_TOKEN = _get_secret("SUPABASE_REFRESH_TOKEN")

REST_PATH = "/rest/v1"
AUTH_PATH = "/auth/v1"
TOKEN_FILE = str(PROJECT_ROOT / "token.json")

# ─── Contexto de tenant ───

ORGANIZATION_ID = _get_int("BACKOFFICE_ORGANIZATION_ID")
BRANCH_ID = _get_int("BACKOFFICE_BRANCH_ID")
USER_ID = _get_secret("BACKOFFICE_USER_ID")

# ─── HTTP ───

REQUEST_TIMEOUT = 30  # segundos
MIN_REQUEST_INTERVAL = 0.05  # 50ms entre requests
MAX_RETRIES = 3
RETRY_BACKOFF = 1.0  # segundos
BALANCE_UPDATE_RETRIES = 5

# ─── Logging ───

LOG_LEVEL = _get_secret("BACKOFFICE_LOG_LEVEL", "INFO")

# ─── Cache ───

CACHE_TTL = 60  # 1 minuto

# ─── Dominio ───

DEFAULT_CURRENCY = "COP"
DEFAULT_CURRENCIES = [{"code": "COP", "name": "Peso Colombiano", "symbol": "$"}]
CURRENCY_DECIMALS = 0  # pesos enteros

ACTIVE_SESSION_STATUSES = ("active", "bill_requested")
PENDING_RECONCILIATION_STATUSES = ("draft", "in_progress")

AGING_PAGE_SIZE = 1000
REMINDER_INTERVAL_DAYS = 3

CUSTOM_SPLIT_TOLERANCE = 1.0  # unidades de moneda

# Umbrales de riesgo (vencido / total), de mayor a menor
RISK_THRESHOLDS = [
    (0.75, "Alto Riesgo"),
    (0.50, "Riesgo Medio"),
    (0.25, "Riesgo Bajo"),
]
LOW_RISK_LABEL = "Bajo Riesgo"
