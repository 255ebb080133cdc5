"""
Utilidades de cache para la app.
"""

import streamlit as st

from backoffice.config import CACHE_TTL


def cached(ttl: int = CACHE_TTL):
    """Decorador sobre st.cache_data; los argumentos que empiezan con "_" no se hashean."""
    return st.cache_data(ttl=ttl, show_spinner=False)


def clear_all_caches():
    st.cache_data.clear()
