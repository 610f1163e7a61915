"""Selectors for the installment kernel (read side)."""

from installment_kernel.selectors.balance_selector import (
    BalanceDTO,
    BalanceEntryDTO,
    BalanceSelector,
)
from installment_kernel.selectors.contract_selector import (
    ContractEditDTO,
    ContractSelector,
    ContractSummaryDTO,
    PaymentDTO,
)

__all__ = [
    "BalanceDTO",
    "BalanceEntryDTO",
    "BalanceSelector",
    "ContractEditDTO",
    "ContractSelector",
    "ContractSummaryDTO",
    "PaymentDTO",
]
