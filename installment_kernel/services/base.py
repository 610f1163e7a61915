"""
BaseService -- shared constructor for the write-side services.

Every service is built from the caller's ``Session``, a ``Clock`` and a
``ReconciliationPolicy``.  Services flush; they never commit or roll back.
A confirmation, the months its excess pays off and the manager credit it
earns therefore land in the same transaction, owned by the caller's
``session_scope()``.  Savepoints (``begin_nested``) are the only
sub-transactions a service may open.
"""

from abc import ABC

from sqlalchemy.orm import Session

from installment_kernel.domain.clock import Clock, SystemClock
from installment_kernel.domain.policy import DEFAULT_POLICY, ReconciliationPolicy


class BaseService(ABC):

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: ReconciliationPolicy | None = None,
    ):
        self.session = session
        self.clock = clock or SystemClock()
        self.policy = policy or DEFAULT_POLICY

    @property
    def tolerance(self):
        """Amount difference still treated as an exact payment."""
        return self.policy.tolerance
