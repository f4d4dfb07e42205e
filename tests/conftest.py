from __future__ import annotations

import os
import tempfile
from typing import Generator, Any

import pytest

from sqlalchemy.orm import sessionmaker

from blankslate.core.database import Base, build_engine, get_db
from blankslate.main import app
from blankslate import models
from blankslate.models import AccountType
from blankslate.services import BudgetEngine


@pytest.fixture(scope="session")
def test_db_url() -> Generator[str, Any, Any]:
    # temp SQLite file so the developer database is never touched
    fd, path = tempfile.mkstemp(prefix="blankslate_test_", suffix=".sqlite3")
    os.close(fd)
    url = f"sqlite:///{path}"
    yield url
    try:
        os.remove(path)
    except OSError:
        pass


@pytest.fixture(scope="session")
def engine(test_db_url: str):
    eng = build_engine(test_db_url)
    Base.metadata.create_all(eng)
    return eng


@pytest.fixture(scope="function")
def db_session(engine) -> Generator[Any, Any, Any]:
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestingSessionLocal()
    session.add(models.User(email="demo@example.com"))
    session.commit()

    try:
        yield session
    finally:
        session.close()
        with engine.begin() as conn:
            if engine.dialect.name == "sqlite":
                conn.exec_driver_sql("PRAGMA foreign_keys=OFF")
            for tbl in reversed(Base.metadata.sorted_tables):
                conn.execute(tbl.delete())
            if engine.dialect.name == "sqlite":
                conn.exec_driver_sql("PRAGMA foreign_keys=ON")


@pytest.fixture(autouse=True)
def override_dependency(db_session):
    # FastAPI DI override
    def _get_db_override():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = _get_db_override
    app.state.budget_registry.clear()
    yield
    app.dependency_overrides.clear()
    app.state.budget_registry.clear()


@pytest.fixture()
def client(db_session):
    from fastapi.testclient import TestClient
    with TestClient(app) as c:
        yield c


# ---- Engine fixtures ---------------------------------------------------


@pytest.fixture()
def budget() -> BudgetEngine:
    """Engine in January 2025 with two groups and no accounts."""
    eng = BudgetEngine(current_month="2025-01")
    eng.create_group("Bills")
    eng.create_item("Bills", "Rent")
    eng.create_item("Bills", "Car Insurance")
    eng.create_group("Everyday")
    eng.create_item("Everyday", "Groceries")
    eng.create_item("Everyday", "Dining")
    eng.stack.clear()
    return eng


@pytest.fixture()
def checking(budget):
    return budget.create_account("Checking", AccountType.DEBIT)


@pytest.fixture()
def savings(budget):
    return budget.create_account("Savings", AccountType.DEBIT)


@pytest.fixture()
def visa(budget):
    return budget.create_account("Visa", AccountType.CREDIT)
