"""
Tema visual del back-office.
Tokens de color, colores por estado, CSS y template Plotly.
"""

# ─── Tokens ───

COLORS = {
    "bg_base": "#f6f7fb",
    "bg_surface": "#ffffff",
    "border": "#e3e6ee",
    "text_primary": "#1f2433",
    "text_secondary": "#4b5365",
    "text_muted": "#8a92a6",
    "primary": "#2563eb",
    "primary_dim": "rgba(37,99,235,0.10)",
    "success": "#16a34a",
    "success_dim": "rgba(22,163,74,0.12)",
    "danger": "#dc2626",
    "danger_dim": "rgba(220,38,38,0.12)",
    "warning": "#d97706",
    "warning_dim": "rgba(217,119,6,0.12)",
    "info": "#0891b2",
    "info_dim": "rgba(8,145,178,0.12)",
}

# Ventanas de aging, de la más sana a la más riesgosa
AGING_COLORS = {
    "0-30 días": COLORS["success"],
    "31-60 días": COLORS["info"],
    "61-90 días": COLORS["warning"],
    "90+ días": COLORS["danger"],
}

RISK_VARIANTS = {
    "Alto Riesgo": "danger",
    "Riesgo Medio": "warning",
    "Riesgo Bajo": "info",
    "Bajo Riesgo": "success",
}

TABLE_STATE_VARIANTS = {
    "free": "success",
    "occupied": "danger",
    "reserved": "warning",
}

TABLE_STATE_LABELS = {
    "free": "Libre",
    "occupied": "Ocupada",
    "reserved": "Reservada",
}

CONNECTION_STATUS_VARIANTS = {
    "draft": "info",
    "connected": "success",
    "paused": "warning",
    "error": "danger",
    "revoked": "danger",
}

RECONCILIATION_STATUS_LABELS = {
    "draft": "Borrador",
    "in_progress": "En progreso",
    "closed": "Cerrada",
}


# ─── Plotly ───

PLOTLY_TEMPLATE = {
    "layout": {
        "paper_bgcolor": "rgba(0,0,0,0)",
        "plot_bgcolor": "rgba(0,0,0,0)",
        "font": {"family": "Inter, sans-serif", "color": COLORS["text_secondary"], "size": 12},
        "xaxis": {"gridcolor": COLORS["border"], "linecolor": COLORS["border"]},
        "yaxis": {"gridcolor": COLORS["border"], "linecolor": COLORS["border"]},
        "legend": {"orientation": "h", "y": -0.2, "bgcolor": "rgba(0,0,0,0)"},
        "colorway": list(AGING_COLORS.values()),
        "margin": {"l": 10, "r": 10, "t": 30, "b": 10},
    }
}


# ─── CSS ───

CUSTOM_CSS = """
<style>
.block-container {
    padding-top: 1.25rem !important;
    max-width: 1280px !important;
}

[data-testid="stMetric"] {
    background: """ + COLORS["bg_surface"] + """;
    border: 1px solid """ + COLORS["border"] + """;
    border-radius: 10px;
    padding: 14px 16px;
}
[data-testid="stMetricLabel"] {
    font-size: 0.75rem !important;
    color: """ + COLORS["text_muted"] + """ !important;
    text-transform: uppercase !important;
}

.bo-header h1 {
    font-size: 1.6rem !important;
    color: """ + COLORS["text_primary"] + """ !important;
    margin: 0 !important;
}
.bo-header .meta {
    font-size: 0.8rem;
    color: """ + COLORS["text_muted"] + """;
}

.section-hdr {
    margin: 1rem 0 0.75rem 0;
    padding-bottom: 0.4rem;
    border-bottom: 2px solid """ + COLORS["primary_dim"] + """;
}
.section-hdr h2 {
    font-size: 1.15rem !important;
    color: """ + COLORS["text_primary"] + """ !important;
    margin: 0 !important;
}
.section-hdr .sub {
    font-size: 0.8rem;
    color: """ + COLORS["text_muted"] + """;
}

.warn-banner {
    background: """ + COLORS["warning_dim"] + """;
    border-left: 3px solid """ + COLORS["warning"] + """;
    border-radius: 6px;
    padding: 10px 14px;
    margin-bottom: 10px;
    font-size: 0.88rem;
}

.mesa-card {
    border: 1px solid """ + COLORS["border"] + """;
    border-radius: 10px;
    padding: 10px 12px;
    background: """ + COLORS["bg_surface"] + """;
    margin-bottom: 8px;
}
.mesa-card .name { font-weight: 600; color: """ + COLORS["text_primary"] + """; }
.mesa-card .info { font-size: 0.78rem; color: """ + COLORS["text_muted"] + """; }

.st-badge {
    display: inline-block;
    font-size: 0.7rem;
    font-weight: 600;
    padding: 2px 8px;
    border-radius: 4px;
}
.st-badge.success { background: """ + COLORS["success_dim"] + """; color: """ + COLORS["success"] + """; }
.st-badge.danger  { background: """ + COLORS["danger_dim"] + """; color: """ + COLORS["danger"] + """; }
.st-badge.warning { background: """ + COLORS["warning_dim"] + """; color: """ + COLORS["warning"] + """; }
.st-badge.info    { background: """ + COLORS["info_dim"] + """; color: """ + COLORS["info"] + """; }
</style>
"""
