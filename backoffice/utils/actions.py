"""
Ejecución de acciones de usuario con notificación.

Cada botón de la app llama a `run_action`: si la operación falla se muestra
un aviso y el estado de la vista queda como estaba.
"""

import logging

import streamlit as st

logger = logging.getLogger(__name__)


def run_action(fn, success: str = None, failure: str = "No se pudo completar la operación", notify=None):
    """
    Ejecuta `fn()` y notifica el resultado.

    Retorna el valor de `fn` o None si falló. `notify` recibe el mensaje
    (por defecto st.toast).
    """
    notify = notify or st.toast
    try:
        result = fn()
    except Exception as e:
        logger.exception(failure)
        notify(f"{failure}: {e}")
        return None
    if success:
        notify(success)
    return result


def run_command(fn, success: str = None, failure: str = "No se pudo completar la operación", notify=None) -> bool:
    """Como `run_action` para operaciones sin resultado: retorna si tuvo éxito."""
    def call():
        fn()
        return True
    return run_action(call, success=success, failure=failure, notify=notify) is not None
