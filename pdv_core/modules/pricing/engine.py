"""
Motor de precios del carrito (Sale Draft)

El SaleDraft es el único dueño de las líneas del carrito y del descuento
global. Cada mutación retorna un PricingSnapshot inmutable recalculado
desde cero; compute_snapshot() es una función pura de (líneas, descuento
global), sin estado oculto.

Reglas de cálculo:
- gross = Σ(unit_price × quantity)
- Descuento por línea: percent -> line_gross × value/100, fixed -> value
- Un descuento fixed por línea puede superar el bruto de la línea; no se
  limita en la línea, sólo el neto de cada línea se lleva a 0 y el total
  final se limita con max(0, ...)
- El descuento global se aplica sobre el neto después de descuentos por
  línea (compone, no es porcentaje del bruto original)
- Cada monto de descuento se redondea a centavos (ROUND_HALF_UP); el
  porcentaje equivalente de una cascata conserva precisión completa
"""

from collections import OrderedDict
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Hashable, Iterable, Mapping, Optional, Tuple
from uuid import UUID, uuid4
import logging

from pdv_core.common.exceptions import InvalidAmount, InvalidDiscount, InvalidQuantity, LineNotFound
from pdv_core.common.money import (
    HUNDRED, ZERO, money, parse_decimal, percent_of, quantize_money, sum_money
)
from pdv_core.modules.pricing.cascade import resolve

logger = logging.getLogger(__name__)


# ===== VALUE OBJECTS =====

class DiscountKind(str, Enum):
    PERCENT = "percent"
    FIXED = "fixed"


@dataclass(frozen=True)
class DiscountSpec:
    """
    Instrucción de descuento.

    Para PERCENT, `value` es el porcentaje equivalente ya resuelto (nunca la
    expresión cruda); `expression` guarda el texto original sólo para
    mostrarlo.
    """
    kind: DiscountKind
    value: Decimal
    expression: Optional[str] = None

    @classmethod
    def percent(cls, value) -> "DiscountSpec":
        """
        Crear descuento porcentual desde un número o una expresión en cascata.

        Raises:
            InvalidDiscount: si la expresión no es válida
        """
        if isinstance(value, str):
            result = resolve(value)
            if not result.valid:
                raise InvalidDiscount(f"Expresión de descuento inválida: {result.error}")
            return cls(kind=DiscountKind.PERCENT, value=result.equivalent_percent, expression=value.strip())

        parsed = parse_decimal(value)
        if parsed is None:
            raise InvalidDiscount(f"Porcentaje no numérico: {value!r}")
        return cls(kind=DiscountKind.PERCENT, value=parsed)

    @classmethod
    def fixed(cls, value) -> "DiscountSpec":
        parsed = parse_decimal(value)
        if parsed is None:
            raise InvalidDiscount(f"Valor de descuento no numérico: {value!r}")
        return cls(kind=DiscountKind.FIXED, value=parsed)

    def validate(self) -> "DiscountSpec":
        """
        Rechazar specs mal formados. Nunca convierte negativos en cero.

        Raises:
            InvalidDiscount
        """
        try:
            kind = DiscountKind(self.kind)
        except ValueError:
            raise InvalidDiscount(f"Tipo de descuento desconocido: {self.kind!r}")

        value = parse_decimal(self.value)
        if value is None:
            raise InvalidDiscount(f"Valor de descuento inválido: {self.value!r}")
        if value < 0:
            raise InvalidDiscount("El descuento no puede ser negativo")
        if kind == DiscountKind.PERCENT and value > HUNDRED:
            raise InvalidDiscount("El porcentaje de descuento debe estar entre 0 y 100")

        return replace(self, kind=kind, value=value)

    def amount_for(self, base: Decimal) -> Decimal:
        """Monto de descuento sobre una base, redondeado a centavos"""
        if self.kind == DiscountKind.PERCENT:
            return quantize_money(percent_of(base, self.value))
        return quantize_money(self.value)


@dataclass(frozen=True)
class Product:
    """Producto tal como lo entrega el catálogo"""
    product_id: Hashable
    name: str
    unit_price: Decimal


@dataclass
class CartLine:
    """Línea del carrito. Mutable, pertenece exclusivamente al SaleDraft."""
    product_id: Hashable
    name: str
    unit_price: Decimal
    quantity: int = 1
    discount: Optional[DiscountSpec] = None

    @property
    def gross(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class LinePricing:
    """Desglose de precio de una línea dentro del snapshot"""
    product_id: Hashable
    name: str
    unit_price: Decimal
    quantity: int
    gross: Decimal
    discount_amount: Decimal
    net: Decimal
    discount: Optional[DiscountSpec] = None


@dataclass(frozen=True)
class PricingSnapshot:
    """
    Resultado derivado del carrito. Nunca se persiste por separado.

    Invariante: 0 <= total <= net_after_item_discounts <= gross
    """
    lines: Tuple[LinePricing, ...]
    gross: Decimal
    item_discount_total: Decimal
    net_after_item_discounts: Decimal
    global_discount_amount: Decimal
    total: Decimal
    total_discounts: Decimal
    savings_percent: Decimal
    item_count: int
    global_discount: Optional[DiscountSpec] = None

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def as_dict(self) -> Dict[str, Any]:
        """Datos planos para el colaborador de recibos/impresión"""
        return {
            "lines": [
                {
                    "product_id": line.product_id,
                    "name": line.name,
                    "unit_price": line.unit_price,
                    "quantity": line.quantity,
                    "gross": line.gross,
                    "discount_amount": line.discount_amount,
                    "net": line.net,
                }
                for line in self.lines
            ],
            "gross": self.gross,
            "item_discount_total": self.item_discount_total,
            "net_after_item_discounts": self.net_after_item_discounts,
            "global_discount_amount": self.global_discount_amount,
            "total": self.total,
            "total_discounts": self.total_discounts,
            "savings_percent": self.savings_percent,
            "item_count": self.item_count,
        }


# ===== PURE PRICING FUNCTIONS =====

def compute_item_discount_amount(line: CartLine) -> Decimal:
    """
    Monto de descuento de una línea calculado sobre su bruto.

    Un descuento fixed no se limita al bruto de la línea; el límite se
    aplica en el neto (ver compute_snapshot).
    """
    if line.discount is None:
        return ZERO
    return line.discount.amount_for(line.gross)


def compute_global_discount_amount(global_discount: Optional[DiscountSpec],
                                   base_after_item_discounts: Decimal) -> Decimal:
    """Monto del descuento global sobre el neto posterior a los descuentos por línea"""
    if global_discount is None:
        return ZERO
    return global_discount.amount_for(base_after_item_discounts)


def compute_snapshot(lines: Iterable[CartLine],
                     global_discount: Optional[DiscountSpec] = None) -> PricingSnapshot:
    """Calcular el PricingSnapshot. Función pura: mismas entradas, mismo resultado."""
    priced = []
    for line in lines:
        gross = quantize_money(line.gross)
        discount_amount = compute_item_discount_amount(line)
        net = max(ZERO, gross - discount_amount)
        priced.append(LinePricing(
            product_id=line.product_id,
            name=line.name,
            unit_price=line.unit_price,
            quantity=line.quantity,
            gross=gross,
            discount_amount=discount_amount,
            net=net,
            discount=line.discount
        ))

    gross = sum_money(p.gross for p in priced)
    item_discount_total = sum_money(p.discount_amount for p in priced)
    net_after_item_discounts = sum_money(p.net for p in priced)
    global_discount_amount = compute_global_discount_amount(global_discount, net_after_item_discounts)
    total = max(ZERO, net_after_item_discounts - global_discount_amount)
    total_discounts = item_discount_total + global_discount_amount

    if gross > 0:
        savings_percent = quantize_money(total_discounts / gross * HUNDRED)
    else:
        savings_percent = ZERO

    return PricingSnapshot(
        lines=tuple(priced),
        gross=gross,
        item_discount_total=item_discount_total,
        net_after_item_discounts=net_after_item_discounts,
        global_discount_amount=global_discount_amount,
        total=total,
        total_discounts=total_discounts,
        savings_percent=savings_percent,
        item_count=sum(p.quantity for p in priced),
        global_discount=global_discount
    )


def _product_fields(product) -> Tuple[Hashable, str, Any]:
    if isinstance(product, Mapping):
        return product["product_id"], product.get("name", ""), product["unit_price"]
    return product.product_id, getattr(product, "name", ""), product.unit_price


def _check_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise InvalidQuantity(f"La cantidad debe ser un entero mayor o igual a 1: {quantity!r}")
    return quantity


# ===== SALE DRAFT =====

class SaleDraft:
    """
    Venta en curso: carrito mutable + instrucciones de descuento.

    Las mutaciones se aplican una a una en el orden emitido por la UI; cada
    una retorna el snapshot actualizado. No hay concurrencia ni suspensión.
    """

    def __init__(self, draft_id: Optional[UUID] = None):
        self.id = draft_id or uuid4()
        self.created_at = datetime.now(timezone.utc)
        self._lines: "OrderedDict[Hashable, CartLine]" = OrderedDict()
        self._global_discount: Optional[DiscountSpec] = None

    # ----- consultas -----

    @property
    def lines(self) -> Tuple[CartLine, ...]:
        """Copias de las líneas, de la menos a la más recientemente tocada"""
        return tuple(replace(line) for line in self._lines.values())

    @property
    def global_discount(self) -> Optional[DiscountSpec]:
        return self._global_discount

    @property
    def is_empty(self) -> bool:
        return not self._lines

    def get_line(self, product_id: Hashable) -> CartLine:
        line = self._lines.get(product_id)
        if line is None:
            raise LineNotFound(f"El producto {product_id} no está en el carrito")
        return replace(line)

    def compute_snapshot(self) -> PricingSnapshot:
        return compute_snapshot(self._lines.values(), self._global_discount)

    # ----- mutaciones -----

    def add_item(self, product, quantity: int = 1) -> PricingSnapshot:
        """
        Agregar producto al carrito.

        Si el producto ya existe se incrementa la cantidad y la línea pasa a
        la posición más reciente; nunca se duplican líneas.
        """
        quantity = _check_quantity(quantity)
        product_id, name, unit_price = _product_fields(product)

        existing = self._lines.get(product_id)
        if existing is not None:
            existing.quantity += quantity
            self._lines.move_to_end(product_id)
            logger.debug(f"Draft {self.id}: {product_id} qty -> {existing.quantity}")
        else:
            try:
                price = money(unit_price)
            except ValueError as e:
                raise InvalidAmount(f"Precio unitario inválido para {product_id}: {e}")
            self._lines[product_id] = CartLine(
                product_id=product_id,
                name=name,
                unit_price=price,
                quantity=quantity
            )
            logger.debug(f"Draft {self.id}: nueva línea {product_id} x{quantity}")

        return self.compute_snapshot()

    def remove_item(self, product_id: Hashable) -> PricingSnapshot:
        """Eliminar línea; no hace nada si el producto no está"""
        self._lines.pop(product_id, None)
        return self.compute_snapshot()

    def set_quantity(self, product_id: Hashable, quantity: int) -> PricingSnapshot:
        """Reemplazar la cantidad de una línea; 0 elimina la línea"""
        if product_id not in self._lines:
            raise LineNotFound(f"El producto {product_id} no está en el carrito")
        if quantity == 0 and not isinstance(quantity, bool):
            return self.remove_item(product_id)

        self._lines[product_id].quantity = _check_quantity(quantity)
        self._lines.move_to_end(product_id)
        return self.compute_snapshot()

    def set_item_discount(self, product_id: Hashable, spec: Optional[DiscountSpec]) -> PricingSnapshot:
        """
        Reemplazar o limpiar el descuento de una línea.

        Raises:
            LineNotFound: si el producto no está en el carrito
            InvalidDiscount: si el spec está mal formado
        """
        line = self._lines.get(product_id)
        if line is None:
            raise LineNotFound(f"El producto {product_id} no está en el carrito")

        line.discount = spec.validate() if spec is not None else None
        return self.compute_snapshot()

    def set_global_discount(self, spec: Optional[DiscountSpec]) -> PricingSnapshot:
        """Reemplazar o limpiar el único descuento global"""
        self._global_discount = spec.validate() if spec is not None else None
        return self.compute_snapshot()

    def clear(self) -> PricingSnapshot:
        self._lines.clear()
        self._global_discount = None
        return self.compute_snapshot()

    def restore(self, lines: Iterable[CartLine], global_discount: Optional[DiscountSpec] = None) -> PricingSnapshot:
        """Reemplazar todo el contenido del carrito (p. ej. al recuperar una venta guardada)"""
        restored: "OrderedDict[Hashable, CartLine]" = OrderedDict()
        for line in lines:
            _check_quantity(line.quantity)
            discount = line.discount.validate() if line.discount is not None else None
            restored[line.product_id] = replace(line, discount=discount)

        self._lines = restored
        self._global_discount = global_discount.validate() if global_discount is not None else None
        return self.compute_snapshot()
