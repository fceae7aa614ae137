"""
Objetos de valor del ledger de caja

Son inmutables: el ledger y los repositorios intercambian estas
estructuras, nunca filas ORM.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from pdv_core.common.money import ZERO


class SessionStatus(str, Enum):
    """Estados de la sesión de caja"""
    OPEN = "open"       # Caja abierta
    CLOSED = "closed"   # Caja cerrada (terminal)


class MovementType(str, Enum):
    """Tipos de movimiento de caja"""
    SALE = "sale"               # Venta (ingreso automático)
    SANGRIA = "sangria"         # Retiro de efectivo (egreso manual)
    SUPRIMENTO = "suprimento"   # Refuerzo de efectivo (ingreso manual)


INFLOW_TYPES = (MovementType.SALE, MovementType.SUPRIMENTO)
MANUAL_TYPES = (MovementType.SANGRIA, MovementType.SUPRIMENTO)


@dataclass(frozen=True)
class CashSession:
    id: UUID
    opened_at: datetime
    opening_float: Decimal
    status: SessionStatus = SessionStatus.OPEN
    operator: Optional[str] = None
    closed_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.status == SessionStatus.OPEN


@dataclass(frozen=True)
class CashMovement:
    """Entrada del ledger. amount siempre positivo; el tipo define el signo."""
    id: UUID
    session_id: UUID
    sequence: int
    type: MovementType
    amount: Decimal
    created_at: datetime
    reason: Optional[str] = None
    notes: Optional[str] = None

    @property
    def signed_amount(self) -> Decimal:
        """Monto con signo según el tipo de movimiento"""
        if self.type in INFLOW_TYPES:
            return abs(self.amount)
        return -abs(self.amount)


@dataclass(frozen=True)
class ClosingReconciliation:
    """
    Arqueo de cierre. Se calcula una sola vez y queda como registro histórico.

    difference = counted - expected (negativo: faltante, positivo: sobrante)
    """
    session_id: UUID
    expected: Decimal
    counted: Decimal
    difference: Decimal
    closed_at: datetime
    observations: Optional[str] = None

    @property
    def is_shortage(self) -> bool:
        return self.difference < ZERO

    @property
    def is_overage(self) -> bool:
        return self.difference > ZERO

    @property
    def is_balanced(self) -> bool:
        return self.difference == ZERO


@dataclass(frozen=True)
class SessionSummary:
    """Resumen de caja (datos planos para el reporte de apertura/cierre)"""
    session: CashSession
    opening_float: Decimal
    total_sales: Decimal
    total_sangrias: Decimal
    total_suprimentos: Decimal
    expected_balance: Decimal
    movement_count: int
    sale_count: int
    closing: Optional[ClosingReconciliation] = None
