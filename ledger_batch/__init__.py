"""
ledger_batch -- Recurrence materialization and its triggers.

Turns due recurring rules into dated ledger transactions, purges expired
soft-deleted rows, and drives both from an in-process daily scheduler or
the administrative CLI.

Architecture:
    ledger_batch/ is a top-level package.  Nothing in ledger_kernel/
    imports from ledger_batch.

Invariants:
    - One run = one unit of work (all effects commit together or not at all).
    - Runs are serialized (process lock + database lock).
    - Re-running the same as_of is a no-op (storage-level occurrence guard).
    - Clock injection (no datetime.now() calls).
    - Graceful shutdown (stop signal cancels an in-flight run, which rolls back).
"""
