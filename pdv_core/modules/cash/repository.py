"""
Repositorios del ledger de caja

CashRepository es la frontera con el almacenamiento externo. El ledger
sólo conoce esta interfaz; la mecánica de persistencia queda en los
adaptadores:

- SqlAlchemyCashRepository: base relacional (SQLite/PostgreSQL)
- InMemoryCashRepository: almacenamiento en proceso (tests, modo offline)
"""

from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, List, Optional
from uuid import UUID
import logging

from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pdv_core.common.exceptions import SessionAlreadyOpen, SessionNotFound, StaleLedger
from pdv_core.modules.cash.domain import (
    CashMovement, CashSession, ClosingReconciliation, SessionStatus
)
from pdv_core.modules.cash.models import CashClosingModel, CashMovementModel, CashSessionModel

logger = logging.getLogger(__name__)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite devuelve DateTime sin zona horaria; los valores se guardan en UTC"""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CashRepository(ABC):
    """Interfaz de persistencia que consume el ledger"""

    @abstractmethod
    def load_open_session(self) -> Optional[CashSession]:
        """Sesión abierta actual o None"""

    @abstractmethod
    def create_session(self, session: CashSession) -> CashSession:
        """Persistir una sesión nueva. Falla con SessionAlreadyOpen si ya hay una abierta."""

    @abstractmethod
    def get_session(self, session_id: UUID) -> Optional[CashSession]:
        """Sesión por id o None"""

    @abstractmethod
    def list_sessions(self, status: Optional[SessionStatus] = None,
                      limit: int = 100, offset: int = 0) -> List[CashSession]:
        """Sesiones, de la más reciente a la más antigua"""

    @abstractmethod
    def list_movements(self, session_id: UUID) -> List[CashMovement]:
        """Movimientos de la sesión en orden de registro"""

    @abstractmethod
    def append_movement(self, movement: CashMovement) -> None:
        """Agregar un movimiento. Falla con StaleLedger si la secuencia ya existe."""

    @abstractmethod
    def save_closing(self, closing: ClosingReconciliation) -> CashSession:
        """Guardar el arqueo y marcar la sesión como CLOSED en una sola operación"""

    @abstractmethod
    def get_closing(self, session_id: UUID) -> Optional[ClosingReconciliation]:
        """Arqueo de una sesión cerrada o None"""


class InMemoryCashRepository(CashRepository):
    """Repositorio en memoria; conserva el orden de inserción"""

    def __init__(self):
        self._sessions: Dict[UUID, CashSession] = {}
        self._movements: Dict[UUID, List[CashMovement]] = {}
        self._closings: Dict[UUID, ClosingReconciliation] = {}

    def load_open_session(self) -> Optional[CashSession]:
        for session in self._sessions.values():
            if session.status == SessionStatus.OPEN:
                return session
        return None

    def create_session(self, session: CashSession) -> CashSession:
        if self.load_open_session() is not None:
            raise SessionAlreadyOpen()
        self._sessions[session.id] = session
        self._movements[session.id] = []
        return session

    def get_session(self, session_id: UUID) -> Optional[CashSession]:
        return self._sessions.get(session_id)

    def list_sessions(self, status: Optional[SessionStatus] = None,
                      limit: int = 100, offset: int = 0) -> List[CashSession]:
        sessions = sorted(self._sessions.values(), key=lambda s: s.opened_at, reverse=True)
        if status:
            sessions = [s for s in sessions if s.status == status]
        return sessions[offset:offset + limit]

    def list_movements(self, session_id: UUID) -> List[CashMovement]:
        return list(self._movements.get(session_id, []))

    def append_movement(self, movement: CashMovement) -> None:
        if movement.session_id not in self._sessions:
            raise SessionNotFound()
        log = self._movements[movement.session_id]
        if any(m.sequence == movement.sequence for m in log):
            raise StaleLedger()
        log.append(movement)

    def save_closing(self, closing: ClosingReconciliation) -> CashSession:
        session = self._sessions.get(closing.session_id)
        if session is None:
            raise SessionNotFound()
        closed = replace(session, status=SessionStatus.CLOSED, closed_at=closing.closed_at)
        self._sessions[session.id] = closed
        self._closings[session.id] = closing
        return closed

    def get_closing(self, session_id: UUID) -> Optional[ClosingReconciliation]:
        return self._closings.get(session_id)


class SqlAlchemyCashRepository(CashRepository):
    """Repositorio sobre SQLAlchemy; cada escritura es una transacción"""

    def __init__(self, db: Session):
        self.db = db

    # ----- mapeo fila -> dominio -----

    @staticmethod
    def _to_session(row: CashSessionModel) -> CashSession:
        return CashSession(
            id=row.id,
            opened_at=_as_utc(row.opened_at),
            opening_float=row.opening_float,
            status=row.status,
            operator=row.operator,
            closed_at=_as_utc(row.closed_at)
        )

    @staticmethod
    def _to_movement(row: CashMovementModel) -> CashMovement:
        return CashMovement(
            id=row.id,
            session_id=row.session_id,
            sequence=row.sequence,
            type=row.type,
            amount=row.amount,
            created_at=_as_utc(row.recorded_at),
            reason=row.reason,
            notes=row.notes
        )

    @staticmethod
    def _to_closing(row: CashClosingModel) -> ClosingReconciliation:
        return ClosingReconciliation(
            session_id=row.session_id,
            expected=row.expected,
            counted=row.counted,
            difference=row.difference,
            closed_at=_as_utc(row.closed_at),
            observations=row.observations
        )

    # ----- lectura -----

    def load_open_session(self) -> Optional[CashSession]:
        row = self.db.query(CashSessionModel).filter(
            CashSessionModel.status == SessionStatus.OPEN
        ).first()
        return self._to_session(row) if row else None

    def get_session(self, session_id: UUID) -> Optional[CashSession]:
        row = self.db.get(CashSessionModel, session_id)
        return self._to_session(row) if row else None

    def list_sessions(self, status: Optional[SessionStatus] = None,
                      limit: int = 100, offset: int = 0) -> List[CashSession]:
        query = self.db.query(CashSessionModel)
        if status:
            query = query.filter(CashSessionModel.status == status)

        # Ordenar por fecha de apertura descendente
        rows = query.order_by(desc(CashSessionModel.opened_at)).offset(offset).limit(limit).all()
        return [self._to_session(row) for row in rows]

    def list_movements(self, session_id: UUID) -> List[CashMovement]:
        rows = self.db.query(CashMovementModel).filter(
            CashMovementModel.session_id == session_id
        ).order_by(CashMovementModel.sequence).all()
        return [self._to_movement(row) for row in rows]

    def get_closing(self, session_id: UUID) -> Optional[ClosingReconciliation]:
        row = self.db.get(CashClosingModel, session_id)
        return self._to_closing(row) if row else None

    # ----- escritura -----

    def create_session(self, session: CashSession) -> CashSession:
        row = CashSessionModel(
            id=session.id,
            status=session.status,
            operator=session.operator,
            opening_float=session.opening_float,
            opened_at=session.opened_at
        )
        try:
            self.db.add(row)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise SessionAlreadyOpen()
        return session

    def append_movement(self, movement: CashMovement) -> None:
        row = CashMovementModel(
            id=movement.id,
            session_id=movement.session_id,
            sequence=movement.sequence,
            type=movement.type,
            amount=movement.amount,
            reason=movement.reason,
            notes=movement.notes,
            recorded_at=movement.created_at
        )
        try:
            self.db.add(row)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.warning(f"Append rechazado para sesión {movement.session_id} (secuencia {movement.sequence})")
            raise StaleLedger()

    def save_closing(self, closing: ClosingReconciliation) -> CashSession:
        row = self.db.get(CashSessionModel, closing.session_id)
        if row is None:
            raise SessionNotFound()

        try:
            row.status = SessionStatus.CLOSED
            row.closed_at = closing.closed_at
            self.db.add(CashClosingModel(
                session_id=closing.session_id,
                expected=closing.expected,
                counted=closing.counted,
                difference=closing.difference,
                observations=closing.observations,
                closed_at=closing.closed_at
            ))
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise StaleLedger("La sesión ya tiene un arqueo registrado")

        self.db.refresh(row)
        return self._to_session(row)
