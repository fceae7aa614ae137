"""
Taxonomía de errores del núcleo PDV

- ValidationError: entradas mal formadas (descuentos, montos, cantidades).
  El llamador las recupera localmente y mantiene el campo editable.
- StateError: operaciones inválidas para el estado actual de la caja o
  del carrito. Deben manejarse explícitamente, sin fallback silencioso.
- LedgerCorrupted: el historial de movimientos no es consistente; se
  reporta hacia arriba y nunca se corrige automáticamente.

Cada error expone un `code` estable y el `status_code` HTTP con el que
lo traduce el handler global de la API.
"""

from fastapi import status


class PDVError(Exception):
    """Error base del núcleo PDV"""

    code = "PDV_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str = None):
        self.detail = detail or self.__class__.__doc__ or self.code
        super().__init__(self.detail)


# ===== VALIDATION =====

class ValidationError(PDVError):
    """Datos de entrada inválidos"""
    code = "VALIDATION_ERROR"
    status_code = 422


class InvalidDiscount(ValidationError):
    """Descuento inválido"""
    code = "INVALID_DISCOUNT"


class InvalidAmount(ValidationError):
    """Monto inválido"""
    code = "INVALID_AMOUNT"


class InvalidQuantity(ValidationError):
    """Cantidad inválida"""
    code = "INVALID_QUANTITY"


class InvalidPayment(ValidationError):
    """Pago inválido"""
    code = "INVALID_PAYMENT"


# ===== STATE =====

class StateError(PDVError):
    """Operación inválida para el estado actual"""
    code = "STATE_ERROR"
    status_code = status.HTTP_409_CONFLICT


class SessionAlreadyOpen(StateError):
    """Ya existe una caja abierta"""
    code = "SESSION_ALREADY_OPEN"


class SessionNotOpen(StateError):
    """La caja no está abierta"""
    code = "SESSION_NOT_OPEN"


class InsufficientBalance(StateError):
    """Saldo insuficiente para la sangría"""
    code = "INSUFFICIENT_BALANCE"


class EmptyCart(StateError):
    """El carrito está vacío"""
    code = "EMPTY_CART"


class PaymentIncomplete(StateError):
    """Los pagos no cubren el total de la venta"""
    code = "PAYMENT_INCOMPLETE"


class StaleLedger(StateError):
    """El historial de la caja cambió desde la última lectura"""
    code = "STALE_LEDGER"


class NotFound(StateError):
    """Recurso no encontrado"""
    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


class SessionNotFound(NotFound):
    """Sesión de caja no encontrada"""
    code = "SESSION_NOT_FOUND"


class NoOpenSession(NotFound):
    """No hay caja abierta"""
    code = "NO_OPEN_SESSION"


class LineNotFound(NotFound):
    """El producto no está en el carrito"""
    code = "LINE_NOT_FOUND"


class DraftNotFound(NotFound):
    """Venta en curso no encontrada"""
    code = "DRAFT_NOT_FOUND"


class SavedSaleNotFound(NotFound):
    """Venta guardada no encontrada"""
    code = "SAVED_SALE_NOT_FOUND"


# ===== INTEGRITY =====

class LedgerCorrupted(PDVError):
    """El historial de movimientos de la caja es inconsistente"""
    code = "LEDGER_CORRUPTED"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
