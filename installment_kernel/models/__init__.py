"""ORM models for the installment kernel."""

from installment_kernel.models.balance import Balance, BalanceEntry
from installment_kernel.models.contract import Contract, ContractEdit
from installment_kernel.models.debtor import Debtor
from installment_kernel.models.payment import Payment

__all__ = [
    "Balance",
    "BalanceEntry",
    "Contract",
    "ContractEdit",
    "Debtor",
    "Payment",
]
