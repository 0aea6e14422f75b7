"""
Ledger Kernel

A personal ledger with recurring rules that materialize transactions on a
schedule:
- Calendar-aware recurrence arithmetic (month lengths, leap years)
- Idempotent materialization guarded at the storage layer
- Atomic, all-or-nothing batch runs
- Soft delete with retention-window purge
"""

__version__ = "0.1.0"
