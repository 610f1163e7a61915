"""Tests for enum-valued columns (installment_kernel/db/types.py, models/)."""

from decimal import Decimal

import pytest
from sqlalchemy import select

from installment_kernel.db.types import ENUM_COLUMN_LENGTH
from installment_kernel.domain.enums import (
    BalanceEntryKind,
    ContractStatus,
    NotificationType,
    PaymentReason,
    PaymentStatus,
    PaymentType,
)
from installment_kernel.models.payment import Payment


class TestEnumColumnLength:

    @pytest.mark.parametrize(
        "enum_cls",
        [PaymentStatus, PaymentType, PaymentReason, ContractStatus, BalanceEntryKind, NotificationType],
    )
    def test_every_value_fits(self, enum_cls):
        """No stored enum value is longer than the column."""
        assert max(len(m.value) for m in enum_cls) <= ENUM_COLUMN_LENGTH

    def test_reason_column_length(self):
        assert Payment.__table__.c.reason.type.length == ENUM_COLUMN_LENGTH


class TestEnumRoundTrip:

    def test_longest_reason_round_trips(self, session, create_contract, clock, test_actor_id):
        """A monthly_payment_increase compensation loads back as the enum member."""
        contract = create_contract()
        now = clock.now()
        extra = Payment(
            contract_id=contract.id,
            customer_id=contract.customer_id,
            manager_id=contract.manager_id,
            amount=Decimal("20"),
            expected_amount=Decimal("20"),
            payment_type=PaymentType.EXTRA,
            status=PaymentStatus.SCHEDULED,
            reason=PaymentReason.MONTHLY_PAYMENT_INCREASE,
            created_at=now,
            updated_at=now,
            created_by_id=test_actor_id,
        )
        session.add(extra)
        session.flush()
        session.expunge_all()

        loaded = session.scalars(select(Payment).where(Payment.id == extra.id)).one()
        assert loaded.reason is PaymentReason.MONTHLY_PAYMENT_INCREASE
        assert loaded.status is PaymentStatus.SCHEDULED
        assert loaded.payment_type is PaymentType.EXTRA
