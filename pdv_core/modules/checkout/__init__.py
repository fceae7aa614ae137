"""
Módulo de checkout - cierre de venta

- PaymentPlan: pagos combinados, saldo restante y cambio
- Terminal: carrito + caja; registra la venta como movimiento SALE
- SavedSalesBook: pré-vendas y orçamentos guardados
"""

from .payments import Payment, PaymentMethod, PaymentPlan
from .terminal import CompletedSale, DraftRegistry, SavedSale, SavedSaleKind, SavedSalesBook, Terminal

__all__ = [
    "Payment", "PaymentMethod", "PaymentPlan",
    "CompletedSale", "DraftRegistry", "SavedSale", "SavedSaleKind", "SavedSalesBook", "Terminal",
]
