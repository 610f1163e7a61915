"""
Module: installment_kernel.db.types
Responsibility: Money coercion and the enum column type used by the models.
Architecture position: Kernel > DB.  Imported by models/, domain/ and
    services/; imports nothing from them.

Amounts are Decimal everywhere.  They enter the kernel through as_money(),
which takes Decimal, int or str and refuses float (0.1 + 0.2 != 0.3 would
otherwise leak into tolerance checks).  Nothing is rounded: a payment of
100.005 stays 100.005 and the 0.01 tolerance decides what it means.
"""

from decimal import Decimal

from sqlalchemy import Enum as SAEnum

ZERO = Decimal("0")


def as_money(value: Decimal | int | str | None) -> Decimal:
    """
    Coerce ``value`` to Decimal; None is zero.

    Raises:
        TypeError: float, bool or any other type.
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (bool, float)):
        raise TypeError(f"Money must not be a {type(value).__name__}: {value!r}")
    if isinstance(value, (int, str)):
        return Decimal(value)
    raise TypeError(f"Cannot convert {type(value).__name__} to money")


ENUM_COLUMN_LENGTH = 32


def enum_column(enum_cls: type) -> SAEnum:
    """
    VARCHAR(32) column holding a str Enum's value.

    No native enum type and no CHECK constraint are created, so a new
    status or reason never needs a schema migration as long as it fits
    the column.  Rows load back as enum members.
    """
    return SAEnum(
        enum_cls,
        native_enum=False,
        create_constraint=False,
        length=ENUM_COLUMN_LENGTH,
        values_callable=lambda members: [m.value for m in members],
    )
