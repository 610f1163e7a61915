"""
Installment Kernel - payment reconciliation for installment-sale contracts.

For every incoming payment the kernel decides:
- how much of the contract's debt is satisfied
- where a shortfall or surplus carries over
- the contract's lifecycle status and next due date
- how retroactive edits to contract terms reconcile against recorded payments
"""

__version__ = "0.1.0"
