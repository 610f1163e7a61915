"""
Shared fixtures for the installment kernel tests.

Each test gets a session on its own connection inside an outer transaction
that is rolled back afterwards, so tests never see each other's rows.  The
concurrency tests need real commits and use ``committing_session_factory``
instead; it wipes the tables when they finish.

Set DATABASE_URL to run against a real server.  Without it the suite uses a
SQLite file in the pytest temp directory, and tests marked ``postgres`` are
skipped.
"""

import json
import logging
import os
from datetime import UTC, date, datetime
from decimal import Decimal
from io import StringIO
from typing import Generator
from uuid import UUID, uuid4

import pytest
from sqlalchemy import text
from sqlalchemy.orm import Session

from installment_kernel.db.base import Base
from installment_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from installment_kernel.domain.clock import DeterministicClock
from installment_kernel.domain.policy import ReconciliationPolicy
from installment_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from installment_kernel.services.collaborators import SideEffects
from installment_kernel.services.engine import ReconciliationEngine

TEST_ACTOR_ID = uuid4()
TEST_CONFIRMER_ID = uuid4()

START_DATE = date(2024, 1, 15)
CLOCK_START = datetime(2024, 1, 15, 9, 0, tzinfo=UTC)


def pytest_configure(config):
    config.addinivalue_line("markers", "postgres: needs DATABASE_URL pointing at PostgreSQL")
    config.addinivalue_line("markers", "slow_locks: may block on row locks held by other threads")


def pytest_collection_modifyitems(config, items):
    if os.environ.get("DATABASE_URL", "").startswith("postgresql"):
        return
    skip_pg = pytest.mark.skip(reason="needs DATABASE_URL pointing at PostgreSQL")
    for item in items:
        if "postgres" in item.keywords:
            item.add_marker(skip_pg)


# -- logging ------------------------------------------------------------------


@pytest.fixture(autouse=True, scope="session")
def _json_logging():
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _empty_log_context():
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Records emitted under ``installment_kernel`` during the test, as dicts.

    Call the fixture value to read what has been logged so far.
    """
    buffer = StringIO()
    handler = logging.StreamHandler(buffer)
    handler.setFormatter(StructuredFormatter())
    kernel_logger = logging.getLogger("installment_kernel")
    old_level = kernel_logger.level
    kernel_logger.setLevel(logging.DEBUG)
    kernel_logger.addHandler(handler)

    yield lambda: [json.loads(line) for line in buffer.getvalue().splitlines() if line]

    kernel_logger.removeHandler(handler)
    kernel_logger.setLevel(old_level)


# -- database -----------------------------------------------------------------


@pytest.fixture(scope="session")
def db_engine(tmp_path_factory):
    url = os.environ.get("DATABASE_URL") or (
        f"sqlite:///{tmp_path_factory.mktemp('db') / 'installments_test.db'}"
    )
    eng = init_engine_from_url(url, pool_size=10, max_overflow=10)
    yield eng
    reset_engine()


@pytest.fixture(scope="session")
def db_tables(db_engine):
    drop_tables()
    create_tables()
    yield
    drop_tables()


@pytest.fixture
def session(db_tables, db_engine) -> Generator[Session, None, None]:
    """Session whose work, savepoints included, is discarded at teardown."""
    conn = db_engine.connect()
    outer = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    try:
        yield sess
    finally:
        sess.close()
        outer.rollback()
        conn.close()


@pytest.fixture
def committing_session_factory(db_engine, db_tables):
    """Sessions that really commit, for tests that race several threads."""
    factory = get_session_factory()
    opened: list[Session] = []

    def _open() -> Session:
        opened.append(factory())
        return opened[-1]

    yield _open

    for s in opened:
        s.close()
    with db_engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(text(f"DELETE FROM {table.name}"))


# -- clock, policy, sinks -----------------------------------------------------


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(CLOCK_START)


@pytest.fixture
def policy() -> ReconciliationPolicy:
    return ReconciliationPolicy()


class RecordingNotificationSink:
    def __init__(self):
        self.calls: list[dict] = []

    def notify(self, type, payment_id, contract_id, customer_id, amount, status, month_number):
        self.calls.append(
            {
                "type": type,
                "payment_id": payment_id,
                "contract_id": contract_id,
                "customer_id": customer_id,
                "amount": amount,
                "status": status,
                "month_number": month_number,
            }
        )

    def of_type(self, notification_type) -> list[dict]:
        return [c for c in self.calls if c["type"] is notification_type]


class RecordingAuditSink:
    def __init__(self):
        self.changes: list[dict] = []

    def record_change(self, entity, entity_id, actor_id, field_diffs, metadata):
        self.changes.append(
            {
                "entity": entity,
                "entity_id": entity_id,
                "actor_id": actor_id,
                "field_diffs": field_diffs,
                "metadata": metadata,
            }
        )


@pytest.fixture
def notifications() -> RecordingNotificationSink:
    return RecordingNotificationSink()


@pytest.fixture
def audit() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def engine(session, clock, policy, notifications, audit) -> ReconciliationEngine:
    """ReconciliationEngine bound to the per-test session."""
    return ReconciliationEngine(
        session,
        clock=clock,
        policy=policy,
        side_effects=SideEffects(notifications, audit),
    )


# -- ids and factories --------------------------------------------------------


@pytest.fixture
def test_actor_id() -> UUID:
    """The actor who records payments."""
    return TEST_ACTOR_ID


@pytest.fixture
def confirmer_id() -> UUID:
    """A second actor who confirms them."""
    return TEST_CONFIRMER_ID


@pytest.fixture
def manager_id() -> UUID:
    return uuid4()


@pytest.fixture
def customer_id() -> UUID:
    return uuid4()


@pytest.fixture
def create_contract(engine, customer_id, manager_id, test_actor_id):
    """
    Factory for ACTIVE contracts.

    Defaults: price 1300, initial 100, monthly 100 over 12 months, opened
    on 2024-01-15.
    """

    def _create(**overrides):
        params = {
            "customer_id": customer_id,
            "manager_id": manager_id,
            "product_name": "Washing machine",
            "total_price": Decimal("1300"),
            "initial_payment": Decimal("100"),
            "monthly_payment": Decimal("100"),
            "period": 12,
            "start_date": START_DATE,
            "actor_id": test_actor_id,
        }
        params.update(overrides)
        return engine.open_contract(**params)

    return _create


@pytest.fixture
def pay_months(engine, manager_id, confirmer_id):
    """Confirm ``count`` full monthly installments through the dashboard path."""

    def _pay(contract, count, amount=None):
        results = []
        for _ in range(count):
            results.append(
                engine.pay_by_contract(
                    contract.id,
                    amount if amount is not None else contract.monthly_payment,
                    manager_id,
                    confirmer_id,
                )
            )
        return results

    return _pay


@pytest.fixture
def balance_of(session):
    """Current Balance.dollar of a manager (zero when never credited)."""
    from installment_kernel.selectors.balance_selector import BalanceSelector

    def _balance(manager_id) -> Decimal:
        dto = BalanceSelector(session).balance(manager_id)
        return dto.dollar if dto is not None else Decimal("0")

    return _balance
