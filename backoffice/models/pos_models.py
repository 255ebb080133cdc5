"""
Modelos del POS de restaurante: mesas, sesiones, pedidos y división de cuenta.
"""

from dataclasses import dataclass, field
from typing import Optional

from backoffice.models.fields import to_float, to_int


# ─── Mesas ───

@dataclass
class RestaurantTable:
    id: str
    name: str
    state: str = "free"  # free | occupied | reserved
    capacity: int = 0
    zone: Optional[str] = None
    position_x: Optional[float] = None
    position_y: Optional[float] = None
    organization_id: Optional[int] = None
    branch_id: Optional[int] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict) -> "RestaurantTable":
        return cls(
            id=row["id"],
            name=row.get("name") or "",
            state=row.get("state") or "free",
            capacity=to_int(row.get("capacity")),
            zone=row.get("zone"),
            position_x=row.get("position_x"),
            position_y=row.get("position_y"),
            organization_id=row.get("organization_id"),
            branch_id=row.get("branch_id"),
            updated_at=row.get("updated_at"),
        )


@dataclass
class TableForm:
    name: str
    capacity: int
    zone: Optional[str] = None
    position_x: Optional[float] = None
    position_y: Optional[float] = None


# ─── Sesiones ───

@dataclass
class TableSession:
    """Ocupación de una mesa. Como máximo una activa por mesa (no garantizado por la base)."""
    id: str
    restaurant_table_id: str
    status: str = "active"  # active | bill_requested | completed
    customers: int = 0
    server_id: Optional[str] = None
    sale_id: Optional[str] = None
    opened_at: Optional[str] = None
    closed_at: Optional[str] = None
    organization_id: Optional[int] = None
    notes: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict) -> "TableSession":
        return cls(
            id=row["id"],
            restaurant_table_id=row.get("restaurant_table_id"),
            status=row.get("status") or "active",
            customers=to_int(row.get("customers")),
            server_id=row.get("server_id"),
            sale_id=row.get("sale_id"),
            opened_at=row.get("opened_at"),
            closed_at=row.get("closed_at"),
            organization_id=row.get("organization_id"),
            notes=row.get("notes"),
        )


@dataclass
class TableWithSession:
    """Mesa con su sesión principal y los items consolidados de todas sus sesiones."""
    table: RestaurantTable
    session: Optional[TableSession] = None
    item_count: int = 0
    session_count: int = 0


# ─── Pedido ───

@dataclass
class SaleItem:
    id: str
    quantity: float
    unit_price: float = 0.0
    total: float = 0.0
    tax_amount: float = 0.0
    discount_amount: float = 0.0
    sale_id: Optional[str] = None
    product_id: Optional[int] = None
    product_name: str = "Producto"
    sku: str = ""
    notes: Optional[dict] = None
    created_at: Optional[str] = None

    @property
    def price_per_unit(self) -> float:
        """Precio unitario efectivo: total / cantidad (incluye descuentos de línea)."""
        if not self.quantity:
            return 0.0
        return self.total / self.quantity

    @classmethod
    def from_row(cls, row: dict) -> "SaleItem":
        product = row.get("product") or {}
        notes = row.get("notes") if isinstance(row.get("notes"), dict) else None
        name = product.get("name") or (notes or {}).get("product_name") or "Producto"
        return cls(
            id=row["id"],
            quantity=to_float(row.get("quantity")),
            unit_price=to_float(row.get("unit_price")),
            total=to_float(row.get("total")),
            tax_amount=to_float(row.get("tax_amount")),
            discount_amount=to_float(row.get("discount_amount")),
            sale_id=row.get("sale_id"),
            product_id=row.get("product_id"),
            product_name=name,
            sku=product.get("sku") or "",
            notes=notes,
            created_at=row.get("created_at"),
        )


@dataclass
class TableSessionDetail:
    session: TableSession
    table: Optional[dict] = None
    sale: Optional[dict] = None
    items: list[SaleItem] = field(default_factory=list)


@dataclass
class ProductToAdd:
    product_id: int
    product_name: str
    quantity: float
    unit_price: float
    station: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class PreCuenta:
    """Resumen provisional de la cuenta antes del pago."""
    items: list[SaleItem] = field(default_factory=list)
    subtotal: float = 0.0
    tax_total: float = 0.0
    discount_total: float = 0.0
    total: float = 0.0


@dataclass
class KitchenTicket:
    id: str
    table_session_id: str
    sale_id: Optional[str] = None
    status: str = "new"
    priority: int = 0
    printed_at: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict) -> "KitchenTicket":
        return cls(
            id=row["id"],
            table_session_id=row.get("table_session_id"),
            sale_id=row.get("sale_id"),
            status=row.get("status") or "new",
            priority=to_int(row.get("priority")),
            printed_at=row.get("printed_at"),
            created_at=row.get("created_at"),
        )


@dataclass
class PaymentMethod:
    id: str
    code: str
    name: str
    requires_reference: bool = False

    @classmethod
    def from_row(cls, row: dict) -> "PaymentMethod":
        method = row.get("payment_methods") or {}
        return cls(
            id=row["id"],
            code=method.get("code") or row.get("payment_method_code") or "",
            name=method.get("name") or "",
            requires_reference=bool(method.get("requires_reference", False)),
        )


# ─── División de cuenta ───

@dataclass
class SplitLine:
    item: SaleItem
    quantity: float


@dataclass
class BillSplit:
    """Parte de la cuenta que paga un comensal. Nunca se persiste."""
    id: str
    name: str
    items: list[SplitLine] = field(default_factory=list)
    total: float = 0.0


@dataclass
class CartLine:
    """Línea de carrito que recibe el flujo de cobro."""
    id: str
    name: str
    quantity: float
    unit_price: float
    total: float
    tax: float = 0.0
    product_id: Optional[int] = None
    note: Optional[str] = None
