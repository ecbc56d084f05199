from __future__ import annotations

from decimal import Decimal
import os
import sys

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import importlib

fastapi_app = importlib.import_module("app.main").app
from app.api.deps.work_order_gateway import get_work_order_gateway
from app.db.base import Base
from app.db.session import get_db
from app.models.discount import OWNER_JOB_LINE, OWNER_PART, OWNER_WORK_ORDER
from app.services.pricing_errors import NotFoundError
from app.services.work_order_gateway import OwnerRecord

# Ensure all models are registered with SQLAlchemy metadata
import app.models  # noqa: F401


class FakeWorkOrderGateway:
    """In-memory stand-in for the work-order backend."""

    def __init__(self):
        self.work_orders: dict[int, dict] = {}
        self.items: dict[tuple[str, int], tuple[int, Decimal]] = {}
        self.calls: list[tuple[str, int]] = []

    def add_work_order(self, work_order_id, labor_total="0", parts_total="0", is_editable=True):
        self.work_orders[int(work_order_id)] = {
            "labor_total": Decimal(str(labor_total)),
            "parts_total": Decimal(str(parts_total)),
            "is_editable": is_editable,
        }
        return self

    def add_job_line(self, line_id, work_order_id, total_amount):
        self.items[(OWNER_JOB_LINE, int(line_id))] = (int(work_order_id), Decimal(str(total_amount)))
        return self

    def add_part(self, part_id, work_order_id, total_price):
        self.items[(OWNER_PART, int(part_id))] = (int(work_order_id), Decimal(str(total_price)))
        return self

    def lock(self, work_order_id):
        self.work_orders[int(work_order_id)]["is_editable"] = False

    def load_owner(self, owner_kind: str, owner_id: int) -> OwnerRecord:
        self.calls.append((owner_kind, int(owner_id)))
        if owner_kind == OWNER_WORK_ORDER:
            work_order = self.work_orders.get(int(owner_id))
            if work_order is None:
                raise NotFoundError(message=f"work_order {owner_id} was not found.")
            return OwnerRecord(
                owner_kind=owner_kind,
                owner_id=int(owner_id),
                work_order_id=int(owner_id),
                is_editable=work_order["is_editable"],
                labor_total=work_order["labor_total"],
                parts_total=work_order["parts_total"],
            )
        item = self.items.get((owner_kind, int(owner_id)))
        if item is None:
            raise NotFoundError(message=f"{owner_kind} {owner_id} was not found.")
        work_order_id, amount = item
        work_order = self.work_orders.get(work_order_id, {"is_editable": True})
        return OwnerRecord(
            owner_kind=owner_kind,
            owner_id=int(owner_id),
            work_order_id=work_order_id,
            is_editable=work_order["is_editable"],
            amount=amount,
        )


@pytest.fixture(scope="session")
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, _connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    return engine


@pytest.fixture(scope="function")
def db_session(engine):
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def gateway():
    # Work order 1: one job line (500.00) and one part (200.00).
    return (
        FakeWorkOrderGateway()
        .add_work_order(1, labor_total="500.00", parts_total="200.00")
        .add_job_line(10, 1, "500.00")
        .add_part(20, 1, "200.00")
    )


@pytest.fixture(scope="function")
def client(engine, db_session, gateway):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def _override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    fastapi_app.dependency_overrides[get_db] = _override_get_db
    fastapi_app.dependency_overrides[get_work_order_gateway] = lambda: gateway
    with TestClient(fastapi_app) as test_client:
        yield test_client
    fastapi_app.dependency_overrides.clear()
