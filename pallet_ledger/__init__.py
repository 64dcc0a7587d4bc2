"""
Pallet Ledger.

Ledger and cost-accrual engine for pallets stored in a warehouse.
"""
