"""Pytest fixtures for testing"""

import pytest
from datetime import date
from typing import Any, Dict, Generator, List, Tuple
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from credit_engine.api.main import create_app
from credit_engine.api.dependencies import get_notification_sink
from credit_engine.infrastructure.database.models import Base
from credit_engine.infrastructure.database.session import get_db, unit_of_work
from credit_engine.infrastructure.database.config_store import ConfigurationStore
from credit_engine.infrastructure.database.repositories import ActorRepository, CustomerRepository
from credit_engine.domain.models import Customer
from credit_engine.services.orchestrator import TransactionOrchestrator


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class RecordingSink:
    """Notification sink that keeps events in memory"""

    def __init__(self):
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    def emit(self, event_type: str, payload: Dict[str, Any]) -> None:
        self.events.append((event_type, payload))

    def types(self) -> List[str]:
        return [event_type for event_type, _ in self.events]


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def orchestrator(db: Session, sink: RecordingSink) -> TransactionOrchestrator:
    return TransactionOrchestrator(db, sink)


@pytest.fixture
def client(db: Session, sink: RecordingSink) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_sink] = lambda: sink
    return TestClient(app)


@pytest.fixture
def make_customer(db: Session):
    """Factory that persists a customer facility"""

    def _make(
        customer_id: str = "cust_1",
        credit_limit_cents: int = 100_000,
        outstanding_balance_cents: int = 0,
        credit_blocked: bool = False,
        payment_terms_days: int = 30,
        credit_since: date | None = None,
    ) -> Customer:
        with unit_of_work(db):
            return CustomerRepository(db).add(
                Customer(
                    id=customer_id,
                    credit_limit_cents=credit_limit_cents,
                    outstanding_balance_cents=outstanding_balance_cents,
                    credit_blocked=credit_blocked,
                    payment_terms_days=payment_terms_days,
                    credit_since=credit_since,
                )
            )

    return _make


@pytest.fixture
def actors(db: Session) -> Dict[str, str]:
    """Approvers with roles in the actor directory"""
    roles = {
        "manager_1": "Manager",
        "manager_2": "Manager",
        "finance_1": "Finance",
        "finance_2": "Finance",
        "admin_1": "Admin",
        "admin_2": "Admin",
    }
    with unit_of_work(db):
        repo = ActorRepository(db)
        for user_id, role in roles.items():
            repo.set_role(user_id, role)
    return roles


@pytest.fixture
def configure(db: Session):
    """Write business settings the way an administrator would"""

    def _configure(group: str, **values: Any) -> Dict[str, Any]:
        with unit_of_work(db):
            return ConfigurationStore(db).update_group(group, values)

    return _configure


@pytest.fixture
def direct_sales(configure):
    """Sales orders commit straight to the ledger (no approval routing)"""
    configure("approvals", sales_order_require_approval=False)
