"""
Utilidades de formato para valores en pesos colombianos.
"""

from backoffice.config import CURRENCY_DECIMALS


def format_cop(value: float, decimals: int = CURRENCY_DECIMALS) -> str:
    """Formatea un número como peso colombiano ($ 150.000)."""
    text = f"{abs(value):,.{decimals}f}".replace(",", "X").replace(".", ",").replace("X", ".")
    if value < 0:
        return f"-$ {text}"
    return f"$ {text}"


def format_percent(value: float, decimals: int = 1) -> str:
    """Formatea un número como porcentaje (ej: 23.5%)."""
    return f"{value:.{decimals}f}%"


def format_days(value: int) -> str:
    """Días vencidos de forma legible."""
    if value is None:
        return "Sin vencimiento"
    if value < 0:
        return f"Vence en {abs(value)} días" if value != -1 else "Vence mañana"
    if value == 0:
        return "Vence hoy"
    if value == 1:
        return "1 día"
    return f"{value} días"
