"""
Esquemas Pydantic para el motor de precios

- DiscountIn: descuento porcentual (acepta cascata "10+5") o fijo
- CartItemAdd / CartItemUpdate: mutaciones del carrito
- PricingSnapshotOut: totales recalculados
- CascadeResolveRequest / CascadeResolveOut: vista previa de una cascata
"""

from pydantic import BaseModel, Field, field_validator
from decimal import Decimal
from typing import Optional, List, Union
from uuid import UUID

from pdv_core.common.exceptions import InvalidDiscount
from pdv_core.common.money import quantize_money
from pdv_core.modules.pricing.engine import DiscountKind, DiscountSpec


# ===== DISCOUNT SCHEMAS =====

class DiscountIn(BaseModel):
    """
    Instrucción de descuento.

    Para kind=percent, `value` puede ser un número o una expresión en
    cascata ("10+5+2"); se guarda el porcentaje equivalente.
    """
    kind: DiscountKind = Field(..., description="percent o fixed")
    value: Union[Decimal, str] = Field(..., description="Porcentaje, expresión en cascata o valor fijo")

    def to_spec(self) -> DiscountSpec:
        """
        Raises:
            InvalidDiscount: si el valor no es interpretable
        """
        if self.kind == DiscountKind.PERCENT:
            return DiscountSpec.percent(self.value)
        if isinstance(self.value, str) and '+' in self.value:
            raise InvalidDiscount("Un descuento fijo no admite cascata")
        return DiscountSpec.fixed(self.value)


class DiscountOut(BaseModel):
    kind: DiscountKind
    value: Decimal = Field(description="Porcentaje equivalente o valor fijo")
    expression: Optional[str] = None

    model_config = {"from_attributes": True}


# ===== CART SCHEMAS =====

class CartItemAdd(BaseModel):
    """Producto entregado por el catálogo"""
    product_id: str = Field(..., min_length=1, max_length=100, description="ID del producto")
    name: str = Field("", max_length=200, description="Nombre del producto")
    unit_price: Decimal = Field(..., ge=0, description="Precio unitario")
    quantity: int = Field(1, ge=1, description="Cantidad")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        return v.strip()


class CartItemUpdate(BaseModel):
    """Nueva cantidad; 0 elimina la línea"""
    quantity: int = Field(..., ge=0, description="Cantidad")


class LinePricingOut(BaseModel):
    product_id: str
    name: str
    unit_price: Decimal
    quantity: int
    gross: Decimal
    discount_amount: Decimal
    net: Decimal
    discount: Optional[DiscountOut] = None

    model_config = {"from_attributes": True}


class PricingSnapshotOut(BaseModel):
    """Totales del carrito tras la última mutación"""
    lines: List[LinePricingOut]
    gross: Decimal = Field(description="Σ precio × cantidad")
    item_discount_total: Decimal = Field(description="Descuentos por línea")
    net_after_item_discounts: Decimal = Field(description="Neto tras descuentos por línea")
    global_discount_amount: Decimal = Field(description="Descuento global")
    total: Decimal = Field(description="Total a cobrar")
    total_discounts: Decimal = Field(description="Descuentos totales")
    savings_percent: Decimal = Field(description="Ahorro sobre el bruto (%)")
    item_count: int = Field(description="Unidades en el carrito")
    global_discount: Optional[DiscountOut] = None

    model_config = {"from_attributes": True}


class DraftOut(BaseModel):
    id: UUID
    snapshot: PricingSnapshotOut


# ===== CASCADE SCHEMAS =====

class CascadeResolveRequest(BaseModel):
    expression: str = Field(..., description="Expresión p1+p2+...")
    base: Decimal = Field(Decimal("100.00"), ge=0, description="Base para el detalle paso a paso")


class CascadeStepOut(BaseModel):
    percent: Decimal
    base: Decimal
    discount: Decimal
    result: Decimal

    @field_validator('base', 'discount', 'result')
    @classmethod
    def round_for_display(cls, v: Decimal) -> Decimal:
        return quantize_money(v)


class CascadeResolveOut(BaseModel):
    expression: str
    valid: bool
    error: Optional[str] = None
    percentages: List[Decimal] = Field(default=[])
    equivalent_percent: Optional[Decimal] = Field(None, description="Porcentaje único equivalente")
    steps: List[CascadeStepOut] = Field(default=[])
    final_value: Optional[Decimal] = None
