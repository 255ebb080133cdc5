"""
Fragmentos HTML para st.markdown(html, unsafe_allow_html=True).
"""

from html import escape

from backoffice.styles import TABLE_STATE_LABELS, TABLE_STATE_VARIANTS
from backoffice.utils.formatting import format_cop


def page_header(title: str, subtitle: str = "") -> str:
    return f"""
    <div class="bo-header">
        <h1>{escape(title)}</h1>
        <div class="meta">{escape(subtitle)}</div>
    </div>
    """


def section_header(title: str, subtitle: str = None) -> str:
    sub_html = f'<div class="sub">{escape(subtitle)}</div>' if subtitle else ""
    return f"""
    <div class="section-hdr">
        <h2>{escape(title)}</h2>
        {sub_html}
    </div>
    """


def warning_banner(message: str) -> str:
    """Banner de alerta. `message` puede llevar HTML propio (<strong>)."""
    return f'<div class="warn-banner">{message}</div>'


def status_badge(text: str, variant: str = "info") -> str:
    """Badge inline (success, danger, warning, info)."""
    return f'<span class="st-badge {variant}">{escape(text)}</span>'


def table_card(table_with_session) -> str:
    """Tarjeta de mesa para la grilla del salón."""
    table = table_with_session.table
    badge = status_badge(
        TABLE_STATE_LABELS.get(table.state, table.state),
        TABLE_STATE_VARIANTS.get(table.state, "info"),
    )
    info = f"{table.capacity} puestos"
    session = table_with_session.session
    if session is not None:
        info = f"{session.customers} comensales · {table_with_session.item_count} items"
        if table_with_session.session_count > 1:
            info += f" · {table_with_session.session_count} mesas unidas"
    return f"""
    <div class="mesa-card">
        <span class="name">{escape(table.name)}</span> {badge}
        <div class="info">{escape(table.zone or "Sin zona")} · {info}</div>
    </div>
    """


def unpaid_splits_banner(outstanding: float, pending: int) -> str:
    return warning_banner(
        f"La mesa se cerró con <strong>{pending} divisiones sin pagar</strong> "
        f"({format_cop(outstanding)} pendientes)"
    )
