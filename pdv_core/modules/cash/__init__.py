"""
Módulo de caja - ledger de sesión

ENTIDADES PRINCIPALES:
- CashSession: sesión de caja con apertura/cierre
- CashMovement: ventas, sangrías y suprimentos (append-only)
- ClosingReconciliation: arqueo de cierre (esperado vs contado)

REGLAS DE NEGOCIO:
- Solo una caja abierta simultáneamente
- Movimientos requieren caja abierta
- Una sangría nunca deja la caja en negativo
- El saldo esperado se recalcula siempre desde el historial
- Las diferencias de arqueo se reportan, nunca se ajustan automáticamente
"""

from .domain import (
    CashMovement, CashSession, ClosingReconciliation, MovementType, SessionStatus, SessionSummary
)
from .ledger import CashLedger
from .repository import CashRepository, InMemoryCashRepository, SqlAlchemyCashRepository

__all__ = [
    "CashMovement", "CashSession", "ClosingReconciliation", "MovementType", "SessionStatus",
    "SessionSummary", "CashLedger", "CashRepository", "InMemoryCashRepository",
    "SqlAlchemyCashRepository",
]
