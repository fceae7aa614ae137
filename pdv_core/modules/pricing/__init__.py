"""
Módulo de precios - motor del carrito

ENTIDADES PRINCIPALES:
- SaleDraft: carrito en curso con descuentos por línea y descuento global
- PricingSnapshot: totales recalculados tras cada mutación
- CascadeResult: resolución de descuentos en cascata ("10+5" -> 14.5%)

REGLAS DE NEGOCIO:
- Un producto repetido incrementa la cantidad, nunca duplica la línea
- El descuento global compone sobre el neto tras descuentos por línea
- total <= neto tras descuentos por línea <= bruto, todos >= 0
"""

from .cascade import CascadeResult, CascadeStep, resolve, equivalent_percent
from .engine import (
    CartLine, DiscountKind, DiscountSpec, LinePricing, PricingSnapshot, Product, SaleDraft,
    compute_global_discount_amount, compute_item_discount_amount, compute_snapshot
)

__all__ = [
    "CascadeResult", "CascadeStep", "resolve", "equivalent_percent",
    "CartLine", "DiscountKind", "DiscountSpec", "LinePricing", "PricingSnapshot", "Product", "SaleDraft",
    "compute_global_discount_amount", "compute_item_discount_amount", "compute_snapshot",
]
