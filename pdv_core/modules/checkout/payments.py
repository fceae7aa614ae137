"""
Plan de pagos de una venta

Una venta puede pagarse con varios medios. El operador agrega pagos hasta
cubrir el total; lo pagado de más se devuelve como cambio (troco).
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Tuple
from uuid import UUID, uuid4

from pdv_core.common.exceptions import InvalidPayment
from pdv_core.common.money import ZERO, money, sum_money
from pdv_core.core.config import settings


class PaymentMethod(str, Enum):
    MONEY = "money"     # Dinheiro
    PIX = "pix"
    DEBIT = "debit"
    CREDIT = "credit"
    CHECK = "check"     # Cheque


@dataclass(frozen=True)
class Payment:
    id: UUID
    method: PaymentMethod
    amount: Decimal
    installments: Optional[int] = None


class PaymentPlan:
    """Pagos acumulados contra un total fijo"""

    def __init__(self, total, tolerance: Decimal = None, max_installments: int = None):
        self.total = money(total)
        self.tolerance = settings.PAYMENT_TOLERANCE if tolerance is None else tolerance
        self.max_installments = max_installments or settings.MAX_CREDIT_INSTALLMENTS
        self._payments: List[Payment] = []

    @property
    def payments(self) -> Tuple[Payment, ...]:
        return tuple(self._payments)

    @property
    def total_paid(self) -> Decimal:
        return sum_money(p.amount for p in self._payments)

    @property
    def remaining(self) -> Decimal:
        return max(ZERO, self.total - self.total_paid)

    @property
    def change(self) -> Decimal:
        return max(ZERO, self.total_paid - self.total)

    @property
    def is_complete(self) -> bool:
        return self.total_paid >= self.total - self.tolerance

    def add(self, method, amount, installments: Optional[int] = None) -> Payment:
        """
        Agregar un pago.

        Raises:
            InvalidPayment: medio desconocido, monto no positivo o cuotas
            inválidas (sólo crédito admite cuotas, 1..max_installments)
        """
        try:
            method = PaymentMethod(method)
        except ValueError:
            raise InvalidPayment(f"Medio de pago desconocido: {method!r}")

        try:
            amount = money(amount)
        except ValueError as e:
            raise InvalidPayment(str(e))
        if amount <= ZERO:
            raise InvalidPayment("El monto del pago debe ser mayor a cero")

        if method == PaymentMethod.CREDIT:
            if installments is None:
                installments = 1
            if not 1 <= installments <= self.max_installments:
                raise InvalidPayment(f"Cuotas deben estar entre 1 y {self.max_installments}")
        elif installments not in (None, 1):
            raise InvalidPayment("Sólo los pagos con crédito admiten cuotas")
        else:
            installments = None

        payment = Payment(id=uuid4(), method=method, amount=amount, installments=installments)
        self._payments.append(payment)
        return payment

    def remove(self, payment_id: UUID) -> None:
        self._payments = [p for p in self._payments if p.id != payment_id]
