"""
Router FastAPI para el motor de precios

- /pricing/cascade/resolve: vista previa de un descuento en cascata
- /drafts: carrito en curso; cada mutación responde con el snapshot recalculado
"""

from fastapi import APIRouter, status, Path
from typing import Optional
from uuid import UUID

from pdv_core.dependencies.draftDependencies import registry_dependency
from pdv_core.modules.pricing.cascade import resolve
from pdv_core.modules.pricing.engine import PricingSnapshot, Product
from pdv_core.modules.pricing.schemas import (
    CascadeResolveRequest, CascadeResolveOut, CascadeStepOut,
    CartItemAdd, CartItemUpdate, DiscountIn, DraftOut, PricingSnapshotOut
)

pricing_router = APIRouter(prefix="/pricing", tags=["Pricing"])
drafts_router = APIRouter(prefix="/drafts", tags=["Pricing"])


def _draft_out(draft_id: UUID, snapshot: PricingSnapshot) -> DraftOut:
    return DraftOut(id=draft_id, snapshot=PricingSnapshotOut.model_validate(snapshot))


@pricing_router.post("/cascade/resolve", response_model=CascadeResolveOut)
def resolve_cascade(request: CascadeResolveRequest):
    """
    Resolver una expresión en cascata ("10+10" -> 19%).

    Una expresión inválida no es un error HTTP: responde valid=false para
    que la UI mantenga el campo editable.
    """
    result = resolve(request.expression)
    if not result.valid:
        return CascadeResolveOut(expression=request.expression, valid=False, error=result.error)

    return CascadeResolveOut(
        expression=request.expression,
        valid=True,
        percentages=list(result.percentages),
        equivalent_percent=result.equivalent_percent,
        steps=[CascadeStepOut.model_validate(step, from_attributes=True)
               for step in result.breakdown(request.base)],
        final_value=result.apply(request.base)
    )


@drafts_router.post("/", response_model=DraftOut, status_code=status.HTTP_201_CREATED)
def create_draft(registry: registry_dependency):
    draft = registry.create()
    return _draft_out(draft.id, draft.compute_snapshot())


@drafts_router.get("/{draft_id}", response_model=DraftOut)
def get_draft(registry: registry_dependency, draft_id: UUID = Path(..., description="ID del carrito")):
    draft = registry.get(draft_id)
    return _draft_out(draft.id, draft.compute_snapshot())


@drafts_router.delete("/{draft_id}", status_code=status.HTTP_204_NO_CONTENT)
def discard_draft(registry: registry_dependency, draft_id: UUID = Path(..., description="ID del carrito")):
    registry.discard(draft_id)


@drafts_router.post("/{draft_id}/items", response_model=DraftOut)
def add_draft_item(item: CartItemAdd, registry: registry_dependency,
                   draft_id: UUID = Path(..., description="ID del carrito")):
    """Agregar producto; si ya existe, incrementa la cantidad"""
    draft = registry.get(draft_id)
    product = Product(product_id=item.product_id, name=item.name, unit_price=item.unit_price)
    return _draft_out(draft.id, draft.add_item(product, item.quantity))


@drafts_router.patch("/{draft_id}/items/{product_id}", response_model=DraftOut)
def update_draft_item(update: CartItemUpdate, registry: registry_dependency,
                      draft_id: UUID = Path(..., description="ID del carrito"),
                      product_id: str = Path(..., description="ID del producto")):
    draft = registry.get(draft_id)
    return _draft_out(draft.id, draft.set_quantity(product_id, update.quantity))


@drafts_router.delete("/{draft_id}/items/{product_id}", response_model=DraftOut)
def remove_draft_item(registry: registry_dependency,
                      draft_id: UUID = Path(..., description="ID del carrito"),
                      product_id: str = Path(..., description="ID del producto")):
    draft = registry.get(draft_id)
    return _draft_out(draft.id, draft.remove_item(product_id))


@drafts_router.put("/{draft_id}/items/{product_id}/discount", response_model=DraftOut)
def set_draft_item_discount(registry: registry_dependency,
                            discount: Optional[DiscountIn] = None,
                            draft_id: UUID = Path(..., description="ID del carrito"),
                            product_id: str = Path(..., description="ID del producto")):
    """Reemplazar (o limpiar, con cuerpo vacío) el descuento de una línea"""
    draft = registry.get(draft_id)
    spec = discount.to_spec() if discount else None
    return _draft_out(draft.id, draft.set_item_discount(product_id, spec))


@drafts_router.put("/{draft_id}/discount", response_model=DraftOut)
def set_draft_global_discount(registry: registry_dependency,
                              discount: Optional[DiscountIn] = None,
                              draft_id: UUID = Path(..., description="ID del carrito")):
    """Reemplazar (o limpiar, con cuerpo vacío) el descuento global"""
    draft = registry.get(draft_id)
    spec = discount.to_spec() if discount else None
    return _draft_out(draft.id, draft.set_global_discount(spec))
