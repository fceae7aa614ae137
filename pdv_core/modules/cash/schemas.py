"""
Esquemas Pydantic para el ledger de caja

Define la validación de datos de entrada y salida para:
- CashSession: Apertura/cierre de sesiones de caja
- CashMovement: Sangrías y suprimentos
- ClosingReconciliation: Arqueo de cierre
- SessionSummary: Resumen de caja
"""

from pydantic import BaseModel, Field, field_validator
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from datetime import datetime
from enum import Enum

from pdv_core.modules.cash.domain import SessionStatus, MovementType


class ManualMovementType(str, Enum):
    """Movimientos que el operador registra manualmente"""
    SANGRIA = "sangria"
    SUPRIMENTO = "suprimento"


# Motivos sugeridos para la UI
SANGRIA_REASONS = {
    "deposito": "Depósito bancario",
    "pagamento": "Pago a proveedor",
    "retirada": "Retiro del propietario",
    "outro": "Otro",
}

SUPRIMENTO_REASONS = {
    "troco": "Refuerzo de cambio",
    "abertura": "Suprimento inicial",
    "devolucao": "Devolución",
    "outro": "Otro",
}


# ===== CASH SESSION SCHEMAS =====

class CashSessionOpen(BaseModel):
    """Esquema para abrir caja"""
    opening_float: Optional[Decimal] = Field(None, ge=0, description="Fondo inicial; por defecto el configurado")
    operator: Optional[str] = Field(None, max_length=100, description="Nombre del operador")

    @field_validator('operator')
    @classmethod
    def validate_operator(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return v.strip() or None


class CashSessionClose(BaseModel):
    """Esquema para cerrar caja"""
    counted: Decimal = Field(..., ge=0, description="Valor contado en el cajón")
    observations: Optional[str] = Field(None, max_length=500, description="Explicación de la diferencia u otras notas")


class CashSessionOut(BaseModel):
    """Esquema de salida para sesión de caja"""
    id: UUID = Field(description="ID único de la sesión")
    status: SessionStatus = Field(description="Estado de la sesión")
    operator: Optional[str] = Field(None, description="Operador")
    opening_float: Decimal = Field(description="Fondo inicial")
    opened_at: datetime = Field(description="Fecha y hora de apertura")
    closed_at: Optional[datetime] = Field(None, description="Fecha y hora de cierre")

    model_config = {"from_attributes": True}


class CashSessionList(BaseModel):
    """Esquema para lista de sesiones"""
    sessions: List[CashSessionOut] = Field(description="Lista de sesiones")
    limit: int = Field(description="Límite aplicado")
    offset: int = Field(description="Offset aplicado")


# ===== CASH MOVEMENT SCHEMAS =====

class CashMovementCreate(BaseModel):
    """Esquema para registrar sangría o suprimento"""
    type: ManualMovementType = Field(..., description="Tipo de movimiento")
    amount: Decimal = Field(..., gt=0, description="Monto del movimiento (siempre positivo)")
    reason: Optional[str] = Field(None, max_length=100, description="Motivo")
    notes: Optional[str] = Field(None, max_length=500, description="Observaciones")


class CashMovementOut(BaseModel):
    """Esquema de salida para movimiento de caja"""
    id: UUID = Field(description="ID único del movimiento")
    session_id: UUID = Field(description="ID de la sesión")
    sequence: int = Field(description="Posición en el historial")
    type: MovementType = Field(description="Tipo de movimiento")
    amount: Decimal = Field(description="Monto del movimiento")
    signed_amount: Decimal = Field(description="Monto con signo según tipo")
    reason: Optional[str] = Field(None, description="Motivo")
    notes: Optional[str] = Field(None, description="Observaciones")
    created_at: datetime = Field(description="Fecha de registro")

    model_config = {"from_attributes": True}


class CashMovementList(BaseModel):
    movements: List[CashMovementOut]
    expected_balance: Decimal = Field(description="Saldo esperado tras todos los movimientos")


# ===== CLOSING SCHEMAS =====

class ClosingOut(BaseModel):
    """Arqueo de cierre"""
    session_id: UUID
    expected: Decimal = Field(description="Saldo esperado según el historial")
    counted: Decimal = Field(description="Valor contado")
    difference: Decimal = Field(description="contado - esperado (negativo: faltante)")
    is_shortage: bool
    is_overage: bool
    observations: Optional[str] = None
    closed_at: datetime

    model_config = {"from_attributes": True}


class SessionSummaryOut(BaseModel):
    """Resumen de caja"""
    session: CashSessionOut
    opening_float: Decimal
    total_sales: Decimal
    total_sangrias: Decimal
    total_suprimentos: Decimal
    expected_balance: Decimal
    movement_count: int
    sale_count: int
    closing: Optional[ClosingOut] = None

    model_config = {"from_attributes": True}
