"""
Finbot - Source Package

A conversational personal-finance assistant. Users describe expenses,
incomes and transfers in plain Portuguese; the assistant interprets the
message, asks for confirmation and records the transaction in a shared
spreadsheet ledger, recomputing balances and card invoices afterwards.

DESIGN PRINCIPLES:
1. Interpret → Human confirms → System writes
2. Deterministic interpretation (keywords + similarity, no models)
3. Balances are always recomputed from the full ledger
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Finbot Team"
