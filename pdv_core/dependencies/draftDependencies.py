from fastapi import Depends
from typing import Annotated

from pdv_core.modules.checkout.terminal import DraftRegistry

# Carritos en curso del proceso; el carrito es estado de la terminal, no de la base
draft_registry = DraftRegistry()


def get_draft_registry() -> DraftRegistry:
    return draft_registry


registry_dependency = Annotated[DraftRegistry, Depends(get_draft_registry)]
