"""Bridges from the settings artifact to kernel-compatible inputs."""

from installment_config.schema import EngineSettings
from installment_kernel.domain.policy import ReconciliationPolicy


def build_policy(settings: EngineSettings) -> ReconciliationPolicy:
    """Translate reconciliation settings into the kernel's policy object."""
    rec = settings.reconciliation
    return ReconciliationPolicy(
        tolerance=rec.tolerance,
        max_monthly_change_ratio=rec.max_monthly_change_ratio,
        pending_timeout_hours=rec.pending_timeout_hours,
        max_single_payment=rec.max_single_payment,
        system_actor_id=rec.system_actor_id,
    )
