from fastapi import Depends
from typing import Annotated

from pdv_core.dependencies.dbDependencies import db_dependency
from pdv_core.modules.cash.ledger import CashLedger
from pdv_core.modules.cash.repository import SqlAlchemyCashRepository


def get_ledger(db: db_dependency) -> CashLedger:
    """Ledger de caja sobre la sesión de base de datos del request"""
    return CashLedger(SqlAlchemyCashRepository(db))


ledger_dependency = Annotated[CashLedger, Depends(get_ledger)]
