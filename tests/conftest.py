import pytest
from fastapi.testclient import TestClient

from rendicion.main import app
from rendicion.services.repository import InMemoryExpenseRepository, get_repository


AUSOL_TICKET = (
    "AUTOPISTAS DEL SOL S.A.\n"
    "CUIT 30-12345678-9\n"
    "PEAJE\n"
    "TOTAL: $1.234,50"
)


@pytest.fixture
def repo():
    return InMemoryExpenseRepository()


@pytest.fixture
def client(repo):
    app.dependency_overrides[get_repository] = lambda: repo
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def ausol_ticket():
    return AUSOL_TICKET
