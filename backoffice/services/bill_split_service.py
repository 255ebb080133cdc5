"""
Servicio de División de Cuenta.

Divide una orden cerrada entre N comensales con una de tres estrategias:
- items: cada comensal paga cantidades concretas de cada item
- equal: total / N para todos
- custom: montos libres que deben sumar el total (tolerancia de 1 unidad)

El modo es una unión etiquetada (ItemsMode | EqualMode | CustomMode): cambiar de
modo descarta el estado del anterior, sin intentar reconciliarlos.
"""

import math
from dataclasses import dataclass, field
from typing import ClassVar, Union

from backoffice.config import CURRENCY_DECIMALS, CUSTOM_SPLIT_TOLERANCE
from backoffice.models.pos_models import BillSplit, CartLine, SaleItem, SplitLine


class SplitNotConfirmableError(ValueError):
    """La división no cumple las condiciones de su modo."""


# ─── Modos ───

@dataclass
class ItemsMode:
    kind: ClassVar[str] = "items"
    # item_id → {split_id → cantidad asignada}
    assignments: dict[str, dict[str, float]] = field(default_factory=dict)


@dataclass
class EqualMode:
    kind: ClassVar[str] = "equal"


@dataclass
class CustomMode:
    kind: ClassVar[str] = "custom"
    amounts: dict[str, float] = field(default_factory=dict)


SplitMode = Union[ItemsMode, EqualMode, CustomMode]

MODES = {mode.kind: mode for mode in (ItemsMode, EqualMode, CustomMode)}


# ─── Sesión de división ───

class BillSplitSession:
    """Estado del diálogo "Dividir Cuenta" para una orden."""

    def __init__(self, items: list[SaleItem], total: float, comensales: int):
        if comensales < 1:
            raise ValueError("Debe haber al menos un comensal")
        self.items = list(items)
        self.total = float(total)
        self.split_ids = [f"split-{i + 1}" for i in range(comensales)]
        self.names = {sid: f"Comensal {i + 1}" for i, sid in enumerate(self.split_ids)}
        self.current_split = 0
        self.mode: SplitMode = ItemsMode()

    @property
    def comensales(self) -> int:
        return len(self.split_ids)

    def set_mode(self, kind: str) -> SplitMode:
        """Cambia de modo. Siempre reinicia asignaciones y montos."""
        if kind not in MODES:
            raise ValueError(f"Modo de división desconocido: {kind}")
        self.mode = MODES[kind]()
        return self.mode

    def select_split(self, index: int):
        if not 0 <= index < self.comensales:
            raise IndexError(f"Comensal fuera de rango: {index}")
        self.current_split = index

    def _require(self, mode_cls) -> SplitMode:
        if not isinstance(self.mode, mode_cls):
            raise ValueError(
                f"Operación válida solo en modo '{mode_cls.kind}' (actual: '{self.mode.kind}')"
            )
        return self.mode

    def _find_item(self, item_id: str) -> SaleItem | None:
        return next((i for i in self.items if i.id == item_id), None)

    # ─── Modo items ───

    def item_assigned(self, item_id: str) -> float:
        if not isinstance(self.mode, ItemsMode):
            return 0
        return sum(self.mode.assignments.get(item_id, {}).values())

    def item_remaining(self, item_id: str) -> float:
        item = self._find_item(item_id)
        if item is None:
            return 0
        return item.quantity - self.item_assigned(item_id)

    def assign_item(self, item_id: str, quantity: float, split_id: str = None) -> float:
        """
        Asigna `quantity` unidades del item al comensal (por defecto el actual).

        Reemplaza la asignación previa de ese comensal. Si se pide más de lo
        disponible se trunca en silencio. Retorna la cantidad efectivamente asignada.
        """
        mode = self._require(ItemsMode)
        item = self._find_item(item_id)
        if item is None:
            return 0

        split_id = split_id or self.split_ids[self.current_split]
        if split_id not in self.names:
            raise KeyError(f"Comensal desconocido: {split_id}")

        per_split = mode.assignments.setdefault(item_id, {})
        assigned_to_others = sum(q for sid, q in per_split.items() if sid != split_id)
        available = item.quantity - assigned_to_others
        quantity = max(0, min(quantity, available))

        if quantity:
            per_split[split_id] = quantity
        else:
            per_split.pop(split_id, None)
        return quantity

    # ─── Modo equal ───

    def split_equally(self):
        """"Aplicar División Equitativa": pasa a modo equal."""
        self.set_mode(EqualMode.kind)

    # ─── Modo custom ───

    def set_custom_amount(self, split_id: str, amount: float):
        mode = self._require(CustomMode)
        if split_id not in self.names:
            raise KeyError(f"Comensal desconocido: {split_id}")
        mode.amounts[split_id] = float(amount)

    def distribute_as_base(self, decimals: int = CURRENCY_DECIMALS):
        """
        Pre-carga montos custom con división equitativa.

        Cada comensal recibe el total / N truncado a `decimals`; el último absorbe
        el residuo (total − porPersona × (N − 1)) para no perder centavos.
        """
        mode = self._require(CustomMode)
        factor = 10 ** decimals
        per_person = math.floor(self.total * factor / self.comensales) / factor
        for sid in self.split_ids[:-1]:
            mode.amounts[sid] = per_person
        mode.amounts[self.split_ids[-1]] = self.total - per_person * (self.comensales - 1)

    # ─── Resultado ───

    def _split_lines(self, split_id: str) -> list[SplitLine]:
        if not isinstance(self.mode, ItemsMode):
            return []
        lines = []
        for item in self.items:
            qty = self.mode.assignments.get(item.id, {}).get(split_id, 0)
            if qty > 0:
                lines.append(SplitLine(item=item, quantity=qty))
        return lines

    def _split_total(self, split_id: str) -> float:
        if isinstance(self.mode, EqualMode):
            return self.total / self.comensales
        if isinstance(self.mode, CustomMode):
            return self.mode.amounts.get(split_id, 0.0)
        # Precio unitario derivado de total / cantidad, no de unit_price
        return sum(line.item.price_per_unit * line.quantity for line in self._split_lines(split_id))

    @property
    def splits(self) -> list[BillSplit]:
        return [
            BillSplit(
                id=sid,
                name=self.names[sid],
                items=self._split_lines(sid),
                total=self._split_total(sid),
            )
            for sid in self.split_ids
        ]

    def total_assigned(self) -> float:
        return sum(s.total for s in self.splits)

    def can_confirm(self) -> bool:
        if isinstance(self.mode, EqualMode):
            return True
        if isinstance(self.mode, ItemsMode):
            return all(self.item_assigned(item.id) == item.quantity for item in self.items)
        amounts = [self.mode.amounts.get(sid, 0.0) for sid in self.split_ids]
        return (
            abs(sum(amounts) - self.total) < CUSTOM_SPLIT_TOLERANCE
            and all(a > 0 for a in amounts)
        )

    def confirm(self) -> list[BillSplit]:
        if not self.can_confirm():
            raise SplitNotConfirmableError(
                f"La división en modo '{self.mode.kind}' no está completa"
            )
        return self.splits


# ─── Cobro por partes ───

class SplitPaymentTracker:
    """
    Selector de pagos por comensal.

    Solo los splits con total > 0 son cobrables. Los pagos los confirma el flujo
    de cobro externo; aquí solo se registran los ids pagados.
    """

    def __init__(self, splits: list[BillSplit], paid_split_ids=()):
        self.splits = [s for s in splits if s.total > 0]
        valid_ids = {s.id for s in self.splits}
        self.paid = {sid for sid in paid_split_ids if sid in valid_ids}

    def _get(self, split_id: str) -> BillSplit:
        for s in self.splits:
            if s.id == split_id:
                return s
        raise KeyError(f"Split no cobrable: {split_id}")

    def mark_paid(self, split_id: str) -> BillSplit:
        split = self._get(split_id)
        self.paid.add(split_id)
        return split

    def is_paid(self, split_id: str) -> bool:
        return split_id in self.paid

    @property
    def pending_splits(self) -> list[BillSplit]:
        return [s for s in self.splits if s.id not in self.paid]

    @property
    def paid_amount(self) -> float:
        return sum(s.total for s in self.splits if s.id in self.paid)

    @property
    def outstanding_amount(self) -> float:
        return sum(s.total for s in self.pending_splits)

    @property
    def all_paid(self) -> bool:
        return bool(self.splits) and not self.pending_splits

    @property
    def can_finish(self) -> bool:
        """"Finalizar y cerrar mesa" se habilita con al menos un pago, aunque queden pendientes."""
        return bool(self.paid)

    def next_unpaid(self) -> BillSplit | None:
        pending = self.pending_splits
        return pending[0] if pending else None


# ─── Conversión a carrito ───

def split_to_cart_lines(split: BillSplit, label: str = "División equitativa") -> list[CartLine]:
    """Convierte un split en líneas de carrito para el flujo de cobro."""
    if split.items:
        return [
            CartLine(
                id=line.item.id,
                name=line.item.product_name,
                quantity=line.quantity,
                unit_price=line.item.price_per_unit,
                total=line.item.price_per_unit * line.quantity,
                tax=line.item.tax_amount,
                product_id=line.item.product_id,
            )
            for line in split.items
        ]
    return [
        CartLine(
            id=f"split-{split.id}",
            name=f"{label} - {split.name}",
            quantity=1,
            unit_price=split.total,
            total=split.total,
            note=f"{label} - {split.name}",
        )
    ]


def unassigned_items(
    splits: list[BillSplit],
    current_items: list[SaleItem],
    split_item_ids=None,
) -> list[SaleItem]:
    """
    Items de la orden que no quedaron cubiertos por la división
    (típicamente agregados después de dividir).

    Para divisiones sin items (equal / custom) se compara contra `split_item_ids`,
    los ids de la orden al momento de dividir.
    """
    covered = {line.item.id for s in splits for line in s.items}
    if not covered:
        if split_item_ids is None:
            return []
        covered = set(split_item_ids)
    return [item for item in current_items if item.id not in covered]
