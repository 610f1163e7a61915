"""
Collaborator ports -- notification and audit sinks.

The engine reports outcomes to two external collaborators.  Both are
fire-and-forget: a failing sink is logged and swallowed, and never rolls
back or fails the engine operation that called it.

Default implementations write structured log records, which is enough for a
deployment that ships logs to its audit store.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Protocol, runtime_checkable
from uuid import UUID

from installment_kernel.domain.enums import NotificationType, PaymentStatus
from installment_kernel.logging_config import get_logger

logger = get_logger("services.collaborators")


@runtime_checkable
class NotificationSink(Protocol):
    """Delivers payment outcome notifications (bot messages, push, e-mail)."""

    def notify(
        self,
        type: NotificationType,
        payment_id: UUID | None,
        contract_id: UUID | None,
        customer_id: UUID | None,
        amount: Decimal,
        status: PaymentStatus | None,
        month_number: int | None,
    ) -> None: ...


@runtime_checkable
class AuditSink(Protocol):
    """Append-only change log."""

    def record_change(
        self,
        entity: str,
        entity_id: UUID,
        actor_id: UUID,
        field_diffs: dict[str, tuple[Any, Any]],
        metadata: dict[str, Any],
    ) -> None: ...


class LoggingNotificationSink:
    def notify(self, type, payment_id, contract_id, customer_id, amount, status, month_number):
        logger.info(
            "notification",
            extra={
                "notification_type": type.value,
                "notified_payment_id": str(payment_id) if payment_id else None,
                "notified_contract_id": str(contract_id) if contract_id else None,
                "customer_id": str(customer_id) if customer_id else None,
                "amount": str(amount),
                "status": status.value if status else None,
                "month_number": month_number,
            },
        )


class LoggingAuditSink:
    def record_change(self, entity, entity_id, actor_id, field_diffs, metadata):
        logger.info(
            "audit_change",
            extra={
                "entity": entity,
                "entity_id": str(entity_id),
                "audit_actor_id": str(actor_id),
                "field_diffs": {k: [str(old), str(new)] for k, (old, new) in field_diffs.items()},
                "metadata": metadata,
            },
        )


@dataclass
class SideEffects:
    """Best-effort dispatch to the sinks.  Never raises."""

    notifications: NotificationSink
    audit: AuditSink

    @classmethod
    def default(cls) -> SideEffects:
        return cls(LoggingNotificationSink(), LoggingAuditSink())

    def notify(
        self,
        type: NotificationType,
        *,
        payment_id: UUID | None = None,
        contract_id: UUID | None = None,
        customer_id: UUID | None = None,
        amount: Decimal = Decimal("0"),
        status: PaymentStatus | None = None,
        month_number: int | None = None,
    ) -> bool:
        try:
            self.notifications.notify(
                type, payment_id, contract_id, customer_id, amount, status, month_number
            )
            return True
        except Exception:
            logger.warning(
                "notification_failed",
                exc_info=True,
                extra={"notification_type": type.value},
            )
            return False

    def record_change(
        self,
        entity: str,
        entity_id: UUID,
        actor_id: UUID,
        field_diffs: dict[str, tuple[Any, Any]],
        metadata: dict[str, Any] | None = None,
    ) -> bool:
        try:
            self.audit.record_change(entity, entity_id, actor_id, field_diffs, metadata or {})
            return True
        except Exception:
            logger.warning(
                "audit_record_failed",
                exc_info=True,
                extra={"entity": entity, "entity_id": str(entity_id)},
            )
            return False
