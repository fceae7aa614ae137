"""
Ledger de sesión de caja

Ciclo de vida del cajón de efectivo durante un turno:

    NO_SESSION -> OPEN -> CLOSED   (CLOSED es terminal; reabrir crea otra sesión)

El saldo esperado nunca se guarda: se recalcula desde el historial completo
de movimientos en cada consulta, que es la única fuente de verdad. Cada
append o cierre lee el historial inmediatamente antes de escribir; el
repositorio rechaza con StaleLedger un append basado en una lectura vieja.

Una diferencia de arqueo distinta de cero no es un error: se reporta
(faltante o sobrante) y nunca se corrige automáticamente.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, List, Optional, Sequence, Tuple
from uuid import UUID, uuid4
import logging

from pdv_core.common.exceptions import (
    InsufficientBalance, InvalidAmount, LedgerCorrupted,
    SessionAlreadyOpen, SessionNotFound, SessionNotOpen
)
from pdv_core.common.money import ZERO, format_brl, money
from pdv_core.modules.cash.domain import (
    CashMovement, CashSession, ClosingReconciliation, MANUAL_TYPES,
    MovementType, SessionStatus, SessionSummary
)
from pdv_core.modules.cash.repository import CashRepository

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _non_negative(value, field: str) -> Decimal:
    try:
        return money(value)
    except ValueError as e:
        raise InvalidAmount(f"{field}: {e}")


def _positive(value, field: str = "amount") -> Decimal:
    amount = _non_negative(value, field)
    if amount <= ZERO:
        raise InvalidAmount(f"{field}: el monto debe ser mayor a cero")
    return amount


def replay_balance(session: CashSession, movements: Sequence[CashMovement]) -> Decimal:
    """
    Recalcular el saldo esperado a partir del historial.

    expected = opening_float + Σ(SALE) + Σ(SUPRIMENTO) - Σ(SANGRIA)

    Raises:
        LedgerCorrupted: si el historial tiene montos no positivos, movimientos
        de otra sesión, tipos desconocidos o deja el cajón en negativo
    """
    balance = session.opening_float
    for movement in movements:
        if movement.session_id != session.id:
            raise LedgerCorrupted(f"Movimiento {movement.id} no pertenece a la sesión {session.id}")
        if movement.amount is None or movement.amount <= ZERO:
            raise LedgerCorrupted(f"Movimiento {movement.id} con monto no positivo: {movement.amount}")
        if not isinstance(movement.type, MovementType):
            raise LedgerCorrupted(f"Movimiento {movement.id} con tipo desconocido: {movement.type!r}")

        balance += movement.signed_amount
        if balance < ZERO:
            raise LedgerCorrupted(
                f"El historial de la sesión {session.id} deja la caja en negativo "
                f"en el movimiento #{movement.sequence}"
            )
    return balance


class CashLedger:
    """Máquina de estados de la caja sobre un CashRepository"""

    def __init__(self, repository: CashRepository, clock: Callable[[], datetime] = _utcnow):
        self.repository = repository
        self.clock = clock

    # ===== CONSULTAS =====

    def current_session(self) -> Optional[CashSession]:
        return self.repository.load_open_session()

    def get_session(self, session_id: UUID) -> CashSession:
        session = self.repository.get_session(session_id)
        if session is None:
            raise SessionNotFound(f"Sesión de caja {session_id} no encontrada")
        return session

    def list_sessions(self, status: Optional[SessionStatus] = None,
                      limit: int = 100, offset: int = 0) -> List[CashSession]:
        return self.repository.list_sessions(status=status, limit=limit, offset=offset)

    def movements(self, session_id: UUID) -> List[CashMovement]:
        self.get_session(session_id)
        return self.repository.list_movements(session_id)

    def get_closing(self, session_id: UUID) -> Optional[ClosingReconciliation]:
        self.get_session(session_id)
        return self.repository.get_closing(session_id)

    def current_expected_balance(self, session_id: UUID) -> Decimal:
        """Saldo esperado recalculado desde el historial completo"""
        session, movements = self._read(session_id)
        return replay_balance(session, movements)

    def summary(self, session_id: UUID) -> SessionSummary:
        """Resumen de caja: totales por tipo, saldo esperado y arqueo si está cerrada"""
        session, movements = self._read(session_id)
        expected = replay_balance(session, movements)

        totals = {movement_type: ZERO for movement_type in MovementType}
        for movement in movements:
            totals[movement.type] += movement.amount

        return SessionSummary(
            session=session,
            opening_float=session.opening_float,
            total_sales=totals[MovementType.SALE],
            total_sangrias=totals[MovementType.SANGRIA],
            total_suprimentos=totals[MovementType.SUPRIMENTO],
            expected_balance=expected,
            movement_count=len(movements),
            sale_count=sum(1 for m in movements if m.type == MovementType.SALE),
            closing=self.repository.get_closing(session_id)
        )

    # ===== TRANSICIONES =====

    def open(self, opening_float=ZERO, operator: Optional[str] = None) -> CashSession:
        """
        Abrir una sesión de caja.

        Raises:
            SessionAlreadyOpen: si ya existe una sesión abierta
            InvalidAmount: si el fondo inicial es negativo
        """
        opening_float = _non_negative(opening_float, "opening_float")

        current = self.repository.load_open_session()
        if current is not None:
            raise SessionAlreadyOpen(f"Ya existe una caja abierta (sesión {current.id})")

        session = CashSession(
            id=uuid4(),
            opened_at=self.clock(),
            opening_float=opening_float,
            status=SessionStatus.OPEN,
            operator=(operator or "").strip() or None
        )
        session = self.repository.create_session(session)

        logger.info(f"Caja abierta: sesión {session.id}, operador={session.operator}, "
                    f"fondo inicial {format_brl(opening_float)}")
        return session

    def record_sale(self, session_id: UUID, amount, reference: Optional[str] = None) -> CashMovement:
        """
        Registrar una venta como movimiento SALE.

        El monto es una copia del total al momento de completar la venta.
        """
        amount = _positive(amount)
        session, movements = self._read_open(session_id)
        return self._append(session, movements, MovementType.SALE, amount, reason=reference)

    def record_movement(self, session_id: UUID, type: MovementType, amount,
                        reason: Optional[str] = None, notes: Optional[str] = None) -> CashMovement:
        """
        Registrar sangría o suprimento.

        Raises:
            InvalidAmount: monto no positivo o tipo no manual
            SessionNotOpen: la sesión no está abierta
            InsufficientBalance: sangría mayor al saldo esperado
        """
        try:
            type = MovementType(type)
        except ValueError:
            raise InvalidAmount(f"Tipo de movimiento desconocido: {type!r}")
        if type not in MANUAL_TYPES:
            raise InvalidAmount("Las ventas se registran con record_sale")

        amount = _positive(amount)
        session, movements = self._read_open(session_id)

        if type == MovementType.SANGRIA:
            balance = replay_balance(session, movements)
            if amount > balance:
                raise InsufficientBalance(
                    f"Saldo insuficiente para esta sangría: saldo {format_brl(balance)}, "
                    f"solicitado {format_brl(amount)}"
                )

        return self._append(session, movements, type, amount, reason=reason, notes=notes)

    def close(self, session_id: UUID, counted, observations: Optional[str] = None) -> ClosingReconciliation:
        """
        Cerrar la caja con arqueo.

        Raises:
            SessionNotOpen: si la sesión no está abierta
        """
        counted = _non_negative(counted, "counted")
        session, movements = self._read_open(session_id)
        expected = replay_balance(session, movements)

        closing = ClosingReconciliation(
            session_id=session.id,
            expected=expected,
            counted=counted,
            difference=counted - expected,
            closed_at=self.clock(),
            observations=(observations or "").strip() or None
        )
        self.repository.save_closing(closing)

        if closing.is_balanced:
            logger.info(f"Caja cerrada: sesión {session.id}, saldo {format_brl(expected)} sin diferencias")
        else:
            label = "Faltante" if closing.is_shortage else "Sobrante"
            logger.warning(f"Caja cerrada con diferencia: sesión {session.id}, {label} de "
                           f"{format_brl(abs(closing.difference))} (esperado {format_brl(expected)}, "
                           f"contado {format_brl(counted)})")
        return closing

    # ===== INTERNOS =====

    def _read(self, session_id: UUID) -> Tuple[CashSession, List[CashMovement]]:
        session = self.get_session(session_id)
        return session, self.repository.list_movements(session_id)

    def _read_open(self, session_id: UUID) -> Tuple[CashSession, List[CashMovement]]:
        session, movements = self._read(session_id)
        if not session.is_open:
            raise SessionNotOpen(f"La sesión {session_id} no está abierta")
        return session, movements

    def _append(self, session: CashSession, movements: Sequence[CashMovement],
                type: MovementType, amount: Decimal,
                reason: Optional[str] = None, notes: Optional[str] = None) -> CashMovement:
        movement = CashMovement(
            id=uuid4(),
            session_id=session.id,
            sequence=len(movements) + 1,
            type=type,
            amount=amount,
            created_at=self.clock(),
            reason=reason,
            notes=notes
        )
        self.repository.append_movement(movement)
        logger.info(f"Movimiento {type.value} de {format_brl(amount)} en sesión {session.id}")
        return movement
