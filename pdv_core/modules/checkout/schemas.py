"""
Esquemas Pydantic para el cierre de venta y las ventas guardadas
"""

from pydantic import BaseModel, Field, model_validator
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from datetime import datetime

from pdv_core.modules.checkout.payments import PaymentMethod
from pdv_core.modules.checkout.terminal import SavedSaleKind
from pdv_core.modules.pricing.schemas import DiscountOut, PricingSnapshotOut


class PaymentIn(BaseModel):
    method: PaymentMethod = Field(..., description="Medio de pago")
    amount: Decimal = Field(..., gt=0, description="Monto pagado con este medio")
    installments: Optional[int] = Field(None, ge=1, description="Cuotas (sólo crédito)")

    @model_validator(mode='after')
    def validate_installments(self):
        if self.method != PaymentMethod.CREDIT and self.installments not in (None, 1):
            raise ValueError('Sólo los pagos con crédito admiten cuotas')
        return self


class CompleteSaleRequest(BaseModel):
    payments: List[PaymentIn] = Field(default=[], description="Pagos; pueden combinarse medios")


class PaymentOut(BaseModel):
    id: UUID
    method: PaymentMethod
    amount: Decimal
    installments: Optional[int] = None

    model_config = {"from_attributes": True}


class CompletedSaleOut(BaseModel):
    """Venta completada; el snapshot es una copia por valor"""
    id: UUID
    session_id: UUID
    snapshot: PricingSnapshotOut
    payments: List[PaymentOut]
    change: Decimal = Field(description="Cambio a devolver")
    completed_at: datetime
    movement_id: Optional[UUID] = Field(None, description="Movimiento SALE en la caja")

    model_config = {"from_attributes": True}


class SaveDraftRequest(BaseModel):
    kind: SavedSaleKind = Field(SavedSaleKind.PRESALE, description="presale u quote")
    client_name: Optional[str] = Field(None, max_length=200, description="Cliente")


class SavedLineOut(BaseModel):
    product_id: str
    name: str
    unit_price: Decimal
    quantity: int
    discount: Optional[DiscountOut] = None

    model_config = {"from_attributes": True}


class SavedSaleOut(BaseModel):
    id: UUID
    kind: SavedSaleKind
    created_at: datetime
    lines: List[SavedLineOut]
    total: Decimal
    global_discount: Optional[DiscountOut] = None
    client_name: Optional[str] = None

    model_config = {"from_attributes": True}
