"""
Terminal de venta

Contenedor de estado de la aplicación: referencia (no comparte internos
con) el SaleDraft en curso y el CashLedger. Implementa el flujo de cierre
de venta:

    SaleDraft -> PricingSnapshot -> pagos -> movimiento SALE en la caja

El snapshot se copia por valor al completar la venta, de modo que una
mutación posterior del carrito no puede alterar una venta ya registrada.

También mantiene las ventas guardadas (pré-venda / orçamento) para
retomarlas luego.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple
from uuid import UUID, uuid4
import logging

from pdv_core.common.exceptions import (
    DraftNotFound, EmptyCart, PaymentIncomplete, SavedSaleNotFound, SessionNotOpen
)
from pdv_core.common.money import format_brl
from pdv_core.modules.cash.ledger import CashLedger
from pdv_core.modules.checkout.payments import Payment, PaymentPlan
from pdv_core.modules.pricing.engine import CartLine, DiscountSpec, PricingSnapshot, SaleDraft

logger = logging.getLogger(__name__)


class SavedSaleKind(str, Enum):
    PRESALE = "presale"   # Pré-venda
    QUOTE = "quote"       # Orçamento


@dataclass(frozen=True)
class CompletedSale:
    id: UUID
    session_id: UUID
    snapshot: PricingSnapshot
    payments: Tuple[Payment, ...]
    change: Decimal
    completed_at: datetime
    movement_id: Optional[UUID] = None

    @property
    def total(self) -> Decimal:
        return self.snapshot.total

    def as_receipt_data(self) -> Dict[str, Any]:
        """Datos planos para el colaborador de recibos; sin formato"""
        data = self.snapshot.as_dict()
        data.update({
            "sale_id": self.id,
            "session_id": self.session_id,
            "completed_at": self.completed_at,
            "payments": [
                {"method": p.method.value, "amount": p.amount, "installments": p.installments}
                for p in self.payments
            ],
            "change": self.change,
        })
        return data


@dataclass(frozen=True)
class SavedSale:
    id: UUID
    kind: SavedSaleKind
    created_at: datetime
    lines: Tuple[CartLine, ...]
    total: Decimal
    global_discount: Optional[DiscountSpec] = None
    client_name: Optional[str] = None


class SavedSalesBook:
    """Ventas guardadas en memoria, de la más reciente a la más antigua"""

    def __init__(self):
        self._sales: Dict[UUID, SavedSale] = {}

    def add(self, sale: SavedSale) -> SavedSale:
        self._sales[sale.id] = sale
        return sale

    def get(self, sale_id: UUID) -> SavedSale:
        sale = self._sales.get(sale_id)
        if sale is None:
            raise SavedSaleNotFound(f"Venta guardada {sale_id} no encontrada")
        return sale

    def pop(self, sale_id: UUID) -> SavedSale:
        sale = self.get(sale_id)
        del self._sales[sale_id]
        return sale

    def list(self, kind: Optional[SavedSaleKind] = None) -> List[SavedSale]:
        sales = sorted(self._sales.values(), key=lambda s: s.created_at, reverse=True)
        if kind:
            sales = [s for s in sales if s.kind == kind]
        return sales


class DraftRegistry:
    """Carritos en curso por terminal, más el libro de ventas guardadas"""

    def __init__(self):
        self._drafts: Dict[UUID, SaleDraft] = {}
        self.saved = SavedSalesBook()

    def create(self) -> SaleDraft:
        draft = SaleDraft()
        self._drafts[draft.id] = draft
        return draft

    def get(self, draft_id: UUID) -> SaleDraft:
        draft = self._drafts.get(draft_id)
        if draft is None:
            raise DraftNotFound(f"Venta en curso {draft_id} no encontrada")
        return draft

    def discard(self, draft_id: UUID) -> None:
        self._drafts.pop(draft_id, None)


class Terminal:
    """Flujo de venta de una terminal: carrito + caja + ventas guardadas"""

    def __init__(self, draft: SaleDraft, ledger: CashLedger, saved: Optional[SavedSalesBook] = None):
        self.draft = draft
        self.ledger = ledger
        self.saved = saved if saved is not None else SavedSalesBook()

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    def payment_plan(self) -> PaymentPlan:
        return PaymentPlan(self.draft.compute_snapshot().total)

    def complete_sale(self, payments: Iterable[Tuple]) -> CompletedSale:
        """
        Completar la venta.

        `payments` es una secuencia de (método, monto) o (método, monto, cuotas).

        Raises:
            EmptyCart: carrito vacío
            SessionNotOpen: no hay caja abierta
            InvalidPayment / PaymentIncomplete: pagos inválidos o insuficientes
        """
        snapshot = self.draft.compute_snapshot()
        if snapshot.is_empty:
            raise EmptyCart()

        session = self.ledger.current_session()
        if session is None:
            raise SessionNotOpen("Abra la caja antes de registrar ventas")

        plan = PaymentPlan(snapshot.total)
        for payment in payments:
            plan.add(*payment)
        if not plan.is_complete:
            raise PaymentIncomplete(f"Faltan {format_brl(plan.remaining)} para completar el pago")

        sale_id = uuid4()
        movement_id = None
        if snapshot.total > 0:
            movement = self.ledger.record_sale(session.id, snapshot.total, reference=f"venda {sale_id}")
            movement_id = movement.id

        sale = CompletedSale(
            id=sale_id,
            session_id=session.id,
            snapshot=snapshot,
            payments=plan.payments,
            change=plan.change,
            completed_at=self._now(),
            movement_id=movement_id
        )
        self.draft.clear()

        logger.info(f"Venta {sale.id} completada: total {format_brl(sale.total)}, "
                    f"cambio {format_brl(sale.change)}, sesión {session.id}")
        return sale

    def save_draft(self, kind: SavedSaleKind = SavedSaleKind.PRESALE,
                   client_name: Optional[str] = None) -> SavedSale:
        """Guardar el carrito como pré-venda u orçamento y vaciarlo"""
        snapshot = self.draft.compute_snapshot()
        if snapshot.is_empty:
            raise EmptyCart()

        sale = self.saved.add(SavedSale(
            id=uuid4(),
            kind=SavedSaleKind(kind),
            created_at=self._now(),
            lines=self.draft.lines,
            total=snapshot.total,
            global_discount=self.draft.global_discount,
            client_name=(client_name or "").strip() or None
        ))
        self.draft.clear()
        logger.info(f"Venta guardada {sale.id} ({sale.kind.value}) por {format_brl(sale.total)}")
        return sale

    def load_saved(self, sale_id: UUID) -> PricingSnapshot:
        """Recuperar una venta guardada en el carrito (reemplaza su contenido)"""
        sale = self.saved.pop(sale_id)
        return self.draft.restore(sale.lines, sale.global_discount)

    def delete_saved(self, sale_id: UUID) -> None:
        self.saved.pop(sale_id)

    def list_saved(self, kind: Optional[SavedSaleKind] = None) -> List[SavedSale]:
        return self.saved.list(kind)
