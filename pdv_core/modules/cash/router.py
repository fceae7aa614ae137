"""
Router FastAPI para el ledger de caja

Endpoints REST para apertura, movimientos, resumen y cierre de la caja.
Los errores del dominio (SessionAlreadyOpen, SessionNotOpen,
InsufficientBalance, ...) se traducen en el handler global de la app.
"""

from fastapi import APIRouter, status, Query, Path
from typing import Optional
from uuid import UUID

from pdv_core.common.exceptions import NoOpenSession
from pdv_core.core.config import settings
from pdv_core.dependencies.ledgerDependencies import ledger_dependency
from pdv_core.modules.cash.domain import SessionStatus
from pdv_core.modules.cash.schemas import (
    CashSessionOpen, CashSessionClose, CashSessionOut, CashSessionList,
    CashMovementCreate, CashMovementOut, CashMovementList,
    ClosingOut, SessionSummaryOut
)

cash_sessions_router = APIRouter(prefix="/cash-sessions", tags=["Caixa"])


@cash_sessions_router.post("/open", response_model=CashSessionOut, status_code=status.HTTP_201_CREATED)
def open_cash_session(session_data: CashSessionOpen, ledger: ledger_dependency):
    """
    Abrir caja.

    - **opening_float**: Fondo inicial (por defecto DEFAULT_OPENING_FLOAT)
    - **operator**: Operador (por defecto DEFAULT_OPERATOR)

    Solo puede existir una caja abierta: 409 si ya hay una.
    """
    opening_float = session_data.opening_float
    if opening_float is None:
        opening_float = settings.DEFAULT_OPENING_FLOAT

    session = ledger.open(
        opening_float=opening_float,
        operator=session_data.operator or settings.DEFAULT_OPERATOR
    )
    return CashSessionOut.model_validate(session)


@cash_sessions_router.get("/current", response_model=CashSessionOut)
def get_current_cash_session(ledger: ledger_dependency):
    """Caja abierta actual; 404 si no hay ninguna"""
    session = ledger.current_session()
    if not session:
        raise NoOpenSession()
    return CashSessionOut.model_validate(session)


@cash_sessions_router.get("/", response_model=CashSessionList)
def list_cash_sessions(
    ledger: ledger_dependency,
    status: Optional[SessionStatus] = Query(None, description="Filtrar por estado"),
    limit: int = Query(100, ge=1, le=1000, description="Límite de resultados"),
    offset: int = Query(0, ge=0, description="Offset para paginación")
):
    """Historial de sesiones, de la más reciente a la más antigua"""
    sessions = ledger.list_sessions(status=status, limit=limit, offset=offset)
    return CashSessionList(sessions=[CashSessionOut.model_validate(s) for s in sessions], limit=limit, offset=offset)


@cash_sessions_router.get("/{session_id}", response_model=CashSessionOut)
def get_cash_session(ledger: ledger_dependency,
                     session_id: UUID = Path(..., description="ID de la sesión")):
    return CashSessionOut.model_validate(ledger.get_session(session_id))


@cash_sessions_router.get("/{session_id}/summary", response_model=SessionSummaryOut)
def get_cash_session_summary(ledger: ledger_dependency,
                             session_id: UUID = Path(..., description="ID de la sesión")):
    """
    Resumen de caja.

    Incluye fondo inicial, totales de ventas, sangrías y suprimentos,
    saldo esperado y, si la caja está cerrada, el arqueo.
    """
    return SessionSummaryOut.model_validate(ledger.summary(session_id))


@cash_sessions_router.post("/{session_id}/movements", response_model=CashMovementOut,
                           status_code=status.HTTP_201_CREATED)
def create_cash_movement(movement_data: CashMovementCreate, ledger: ledger_dependency,
                         session_id: UUID = Path(..., description="ID de la sesión")):
    """
    Registrar sangría o suprimento.

    Validaciones:
    - Caja debe estar abierta
    - Monto debe ser mayor a cero
    - Una sangría no puede superar el saldo esperado

    Nota: Los movimientos de venta se generan al completar la venta
    """
    movement = ledger.record_movement(
        session_id=session_id,
        type=movement_data.type.value,
        amount=movement_data.amount,
        reason=movement_data.reason,
        notes=movement_data.notes
    )
    return CashMovementOut.model_validate(movement)


@cash_sessions_router.get("/{session_id}/movements", response_model=CashMovementList)
def list_cash_movements(ledger: ledger_dependency,
                        session_id: UUID = Path(..., description="ID de la sesión")):
    movements = ledger.movements(session_id)
    return CashMovementList(
        movements=[CashMovementOut.model_validate(m) for m in movements],
        expected_balance=ledger.current_expected_balance(session_id)
    )


@cash_sessions_router.post("/{session_id}/close", response_model=ClosingOut)
def close_cash_session(close_data: CashSessionClose, ledger: ledger_dependency,
                       session_id: UUID = Path(..., description="ID de la sesión")):
    """
    Cerrar caja con arqueo.

    - **counted**: Valor contado en el cajón
    - **observations**: Explicación de la diferencia

    La diferencia (contado - esperado) se reporta; no se genera ajuste.
    """
    closing = ledger.close(
        session_id=session_id,
        counted=close_data.counted,
        observations=close_data.observations
    )
    return ClosingOut.model_validate(closing)
