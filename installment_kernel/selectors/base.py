"""
Module: installment_kernel.selectors.base
Responsibility: Read side of the kernel.  Selectors answer questions about
    contracts, payments and balances and hand back frozen DTOs; the
    dashboard and reports never see ORM rows.
Architecture position: Kernel > Selectors.  Imports db/ and models/ only;
    services/ is off limits.

A selector never adds, deletes, flushes or commits.  Whatever transaction
the caller's session is in is the snapshot the answer comes from.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from installment_kernel.db.base import Base

RowT = TypeVar("RowT", bound=Base)


class BaseSelector(ABC, Generic[RowT]):
    """Read-only queries over ``RowT`` and its related rows."""

    def __init__(self, session: Session):
        self.session = session
