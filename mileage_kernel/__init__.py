"""
Mileage Kernel

The approval workflow for monthly business-mileage vouchers:
- Idempotent monthly get-or-create
- Supervisor -> VP -> COO approval chain with a rejection path
- Optimistic concurrency on every status change
- Append-only approval history
- Best-effort notifications after commit
"""

__version__ = "0.1.0"
