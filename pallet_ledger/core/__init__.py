"""
Core modules for Pallet Ledger.

This package contains the ledger computations: pallet equivalence,
depletion, monthly aggregation, storage accrual, document reports and
projections.
"""
