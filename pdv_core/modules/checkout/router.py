"""
Router FastAPI para el cierre de venta

- POST /drafts/{id}/complete: cobra el carrito y registra la venta en la caja
- POST /drafts/{id}/save: guarda el carrito como pré-venda u orçamento
- /saved-sales: consulta, recuperación y descarte de ventas guardadas
"""

from fastapi import APIRouter, status, Query, Path
from typing import List, Optional
from uuid import UUID

from pdv_core.dependencies.draftDependencies import registry_dependency
from pdv_core.dependencies.ledgerDependencies import ledger_dependency
from pdv_core.modules.checkout.schemas import (
    CompleteSaleRequest, CompletedSaleOut, SaveDraftRequest, SavedSaleOut
)
from pdv_core.modules.checkout.terminal import SavedSaleKind, Terminal
from pdv_core.modules.pricing.schemas import DraftOut, PricingSnapshotOut

checkout_router = APIRouter(prefix="/drafts", tags=["Checkout"])
saved_sales_router = APIRouter(prefix="/saved-sales", tags=["Checkout"])


@checkout_router.post("/{draft_id}/complete", response_model=CompletedSaleOut)
def complete_sale(request: CompleteSaleRequest, registry: registry_dependency, ledger: ledger_dependency,
                  draft_id: UUID = Path(..., description="ID del carrito")):
    """
    Completar la venta.

    Validaciones:
    - Carrito no vacío
    - Caja abierta
    - Pagos cubren el total (tolerancia de 1 centavo)

    El total se registra como movimiento SALE en la caja abierta y el
    carrito queda vacío.
    """
    terminal = Terminal(registry.get(draft_id), ledger, registry.saved)
    sale = terminal.complete_sale(
        (p.method, p.amount, p.installments) for p in request.payments
    )
    return CompletedSaleOut.model_validate(sale)


@checkout_router.post("/{draft_id}/save", response_model=SavedSaleOut, status_code=status.HTTP_201_CREATED)
def save_draft(request: SaveDraftRequest, registry: registry_dependency, ledger: ledger_dependency,
               draft_id: UUID = Path(..., description="ID del carrito")):
    terminal = Terminal(registry.get(draft_id), ledger, registry.saved)
    return SavedSaleOut.model_validate(terminal.save_draft(request.kind, request.client_name))


@saved_sales_router.get("/", response_model=List[SavedSaleOut])
def list_saved_sales(registry: registry_dependency,
                     kind: Optional[SavedSaleKind] = Query(None, description="Filtrar por tipo")):
    return [SavedSaleOut.model_validate(s) for s in registry.saved.list(kind)]


@saved_sales_router.post("/{sale_id}/load", response_model=DraftOut)
def load_saved_sale(registry: registry_dependency, ledger: ledger_dependency,
                    sale_id: UUID = Path(..., description="ID de la venta guardada"),
                    draft_id: UUID = Query(..., description="Carrito que recibe la venta")):
    """Recuperar una venta guardada en el carrito indicado (reemplaza su contenido)"""
    draft = registry.get(draft_id)
    snapshot = Terminal(draft, ledger, registry.saved).load_saved(sale_id)
    return DraftOut(id=draft.id, snapshot=PricingSnapshotOut.model_validate(snapshot))


@saved_sales_router.delete("/{sale_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_saved_sale(registry: registry_dependency,
                      sale_id: UUID = Path(..., description="ID de la venta guardada")):
    registry.saved.pop(sale_id)
