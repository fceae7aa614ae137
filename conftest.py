"""
Fixtures compartidas de pytest

La configuración se fija antes de importar pdv_core para que el engine
global use SQLite en memoria.
"""

import os

os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DEBUG"] = "false"

import pytest
from fastapi.testclient import TestClient

from pdv_core.database.database import Base, build_engine
from pdv_core.dependencies.draftDependencies import get_draft_registry
from pdv_core.database.database import get_db
from pdv_core.main import app
from pdv_core.modules.cash.ledger import CashLedger
from pdv_core.modules.cash.repository import InMemoryCashRepository, SqlAlchemyCashRepository
from pdv_core.modules.checkout.terminal import DraftRegistry
from sqlalchemy.orm import sessionmaker


@pytest.fixture
def db_session():
    """Sesión sobre una base SQLite en memoria, nueva para cada test"""
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def memory_ledger():
    return CashLedger(InMemoryCashRepository())


@pytest.fixture
def sql_ledger(db_session):
    return CashLedger(SqlAlchemyCashRepository(db_session))


@pytest.fixture(params=["memory", "sql"])
def ledger(request):
    """El mismo comportamiento debe cumplirse con ambos repositorios"""
    if request.param == "memory":
        return request.getfixturevalue("memory_ledger")
    return request.getfixturevalue("sql_ledger")


@pytest.fixture
def client(db_session):
    """TestClient con base en memoria y carritos aislados por test"""
    registry = DraftRegistry()

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_draft_registry] = lambda: registry
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
