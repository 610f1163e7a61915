"""
Idempotency key generation for balance ledger credits.

Every credit to a manager's balance carries a key with a unique constraint,
so the same source can never be credited twice, even under retries and
concurrent confirmations.
"""

from decimal import Decimal
from uuid import UUID


def generate_idempotency_key(
    source: str,
    source_id: UUID | str,
    qualifier: str | None = None,
) -> str:
    """
    Generate an idempotency key for a balance credit.

    Format: source:source_id[:qualifier]

    Example:
        >>> generate_idempotency_key("payment", uuid)
        "payment:550e8400-e29b-41d4-a716-446655440000"
        >>> generate_idempotency_key("contract-edit", edit_id, "initial")
        "contract-edit:1b4e28ba-2fa1-11d2-883f-0016d3cca427:initial"
    """
    key = f"{source}:{source_id}"
    if qualifier:
        key = f"{key}:{qualifier}"
    return key


def parse_idempotency_key(key: str) -> tuple[str, str, str | None]:
    """
    Parse an idempotency key into (source, source_id, qualifier).

    Raises:
        ValueError: If key format is invalid.
    """
    parts = key.split(":", 2)
    if len(parts) < 2 or not all(parts[:2]):
        raise ValueError(f"Invalid idempotency key format: {key}")
    qualifier = parts[2] if len(parts) == 3 else None
    return parts[0], parts[1], qualifier


def payment_credit_key(payment_id: UUID | str) -> str:
    return generate_idempotency_key("payment", payment_id)


def prepaid_credit_key(payment_id: UUID | str) -> str:
    return generate_idempotency_key("prepaid", payment_id)


def initial_adjustment_key(edit_id: UUID | str) -> str:
    return generate_idempotency_key("contract-edit", edit_id, "initial")


def remaining_collection_key(payment_id: UUID | str, collected_total: Decimal) -> str:
    """Key for money collected against an UNDERPAID payment.

    ``collected_total`` is the payment's actual amount after the
    collection; it only grows, so each collection gets its own key.
    """
    return generate_idempotency_key("remaining", payment_id, f"{collected_total:.9f}")


def remaining_prepaid_key(payment_id: UUID | str, collected_total: Decimal) -> str:
    return generate_idempotency_key("remaining-prepaid", payment_id, f"{collected_total:.9f}")
