"""
Modelos SQLAlchemy para el ledger de caja

- CashSessionModel: Sesiones de caja con apertura/cierre
- CashMovementModel: Movimientos append-only (ventas, sangrías, suprimentos)
- CashClosingModel: Arqueo de cierre inmutable

Solo puede existir una sesión abierta simultáneamente: lo garantiza un
índice único parcial sobre status='open'.
"""

from pdv_core.database.database import Base
from sqlalchemy import Column, String, DateTime, ForeignKey, Numeric, Enum, Text, Integer, Index, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import text
from uuid import uuid4
from pdv_core.common.mixins import CreatedAtMixin, TimestampMixin
from pdv_core.modules.cash.domain import SessionStatus, MovementType


class CashSessionModel(Base, TimestampMixin):
    """
    Sesión de caja (turno)

    Nunca se borra: el cierre sólo cambia el status a CLOSED.
    """
    __tablename__ = "cash_sessions"

    id = Column(Uuid, primary_key=True, default=uuid4)
    status = Column(Enum(SessionStatus), nullable=False, default=SessionStatus.OPEN, index=True)
    operator = Column(String(100), nullable=True)
    opening_float = Column(Numeric(15, 2), nullable=False, default=0)
    opened_at = Column(DateTime(timezone=True), nullable=False)
    closed_at = Column(DateTime(timezone=True), nullable=True)

    movements = relationship("CashMovementModel", back_populates="session",
                             order_by="CashMovementModel.sequence")
    closing = relationship("CashClosingModel", back_populates="session", uselist=False)

    __table_args__ = (
        Index(
            "uq_cash_sessions_single_open", "status",
            unique=True,
            sqlite_where=text("status = 'OPEN'"),
            postgresql_where=text("status = 'OPEN'")
        ),
    )


class CashMovementModel(Base, CreatedAtMixin):
    """
    Movimiento de caja. Append-only.

    `sequence` numera los movimientos dentro de la sesión; la restricción
    única (session_id, sequence) hace fallar un append concurrente que leyó
    un historial desactualizado.
    """
    __tablename__ = "cash_movements"

    id = Column(Uuid, primary_key=True, default=uuid4)
    session_id = Column(Uuid, ForeignKey("cash_sessions.id"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)
    type = Column(Enum(MovementType), nullable=False, index=True)
    amount = Column(Numeric(15, 2), nullable=False)  # Siempre el valor absoluto
    reason = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    recorded_at = Column(DateTime(timezone=True), nullable=False)

    session = relationship("CashSessionModel", back_populates="movements")

    __table_args__ = (
        UniqueConstraint("session_id", "sequence", name="uq_cash_movement_session_sequence"),
    )


class CashClosingModel(Base, CreatedAtMixin):
    """Arqueo de cierre: esperado vs contado"""
    __tablename__ = "cash_closings"

    session_id = Column(Uuid, ForeignKey("cash_sessions.id"), primary_key=True)
    expected = Column(Numeric(15, 2), nullable=False)
    counted = Column(Numeric(15, 2), nullable=False)
    difference = Column(Numeric(15, 2), nullable=False)  # counted - expected
    observations = Column(Text, nullable=True)
    closed_at = Column(DateTime(timezone=True), nullable=False)

    session = relationship("CashSessionModel", back_populates="closing")
