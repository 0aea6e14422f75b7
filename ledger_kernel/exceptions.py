"""
Typed exception hierarchy for the ledger kernel.

Every error has a typed class (catch by type, not message), a ``code`` class
attribute (machine-readable, API-safe) and structured attributes carrying the
context of the failure.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerKernelError (base)
    |
    +-- StoreError
    |   +-- StoreUnavailableError
    |   +-- DuplicateOccurrenceError
    |
    +-- RecurrenceError
    |   +-- UnsupportedFrequencyError
    |   +-- InvalidIntervalError
    |
    +-- RuleError
    |   +-- RuleNotFoundError
    |   +-- RuleValidationError
    |
    +-- TransactionError
    |   +-- TransactionNotFoundError
    |
    +-- TagError
    |   +-- TagNotFoundError
    |   +-- TagAlreadyExistsError
    |
    +-- RunError
        +-- RunCancelledError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                    | When Raised
-------------|-------------------------|---------------------------------------------
Store        | STORE_UNAVAILABLE       | Connectivity/transport failure; run aborted
             | DUPLICATE_OCCURRENCE    | Manual write of an existing (rule, date)
-------------|-------------------------|---------------------------------------------
Recurrence   | UNSUPPORTED_FREQUENCY   | Frequency value the advancer does not know
             | INVALID_INTERVAL        | interval_n < 1
-------------|-------------------------|---------------------------------------------
Rule         | RULE_NOT_FOUND          | Rule ID doesn't exist
             | RULE_VALIDATION_FAILED  | Rejected create/update input
-------------|-------------------------|---------------------------------------------
Transaction  | TRANSACTION_NOT_FOUND   | Transaction ID doesn't exist
-------------|-------------------------|---------------------------------------------
Tag          | TAG_NOT_FOUND           | Tag ID doesn't exist
             | TAG_ALREADY_EXISTS      | Tag name already taken
-------------|-------------------------|---------------------------------------------
Run          | RUN_CANCELLED           | Cancel signal observed mid-run; rolled back

===============================================================================
HANDLING PATTERNS
===============================================================================

1. The recurrence run never raises DuplicateOccurrenceError: a uniqueness
   violation on the occurrence insert means "already materialized".

2. StoreUnavailableError and RunCancelledError leave the store exactly as of
   the last commit.  Retry policy belongs to the trigger, not the kernel:

    try:
        result = engine.run(as_of)
    except StoreUnavailableError as e:
        log.warning("store down", extra={"code": e.code})
        schedule_retry()
"""


class LedgerKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses must have a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_KERNEL_ERROR"


# Store-related exceptions


class StoreError(LedgerKernelError):
    """Base exception for persistence boundary errors."""

    code: str = "STORE_ERROR"


class StoreUnavailableError(StoreError):
    """The store could not be reached or the connection failed mid-run."""

    code: str = "STORE_UNAVAILABLE"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Store unavailable during {operation}: {reason}")


class DuplicateOccurrenceError(StoreError):
    """An occurrence for (rule, date) already exists."""

    code: str = "DUPLICATE_OCCURRENCE"

    def __init__(self, rule_id: str, occurrence_date: str):
        self.rule_id = rule_id
        self.occurrence_date = occurrence_date
        super().__init__(
            f"Occurrence of rule {rule_id} on {occurrence_date} already exists"
        )


# Recurrence-related exceptions


class RecurrenceError(LedgerKernelError):
    """Base exception for recurrence arithmetic errors."""

    code: str = "RECURRENCE_ERROR"


class UnsupportedFrequencyError(RecurrenceError):
    """Frequency value is not one of daily/weekly/monthly/yearly."""

    code: str = "UNSUPPORTED_FREQUENCY"

    def __init__(self, frequency: str):
        self.frequency = frequency
        super().__init__(f"Unsupported frequency: {frequency!r}")


class InvalidIntervalError(RecurrenceError):
    """Interval count is below 1."""

    code: str = "INVALID_INTERVAL"

    def __init__(self, interval_n: int):
        self.interval_n = interval_n
        super().__init__(f"Interval must be >= 1, got {interval_n}")


# Rule-related exceptions


class RuleError(LedgerKernelError):
    """Base exception for recurring rule errors."""

    code: str = "RULE_ERROR"


class RuleNotFoundError(RuleError):
    """Recurring rule with given ID was not found."""

    code: str = "RULE_NOT_FOUND"

    def __init__(self, rule_id: str):
        self.rule_id = rule_id
        super().__init__(f"Recurring rule not found: {rule_id}")


class RuleValidationError(RuleError):
    """Rule input failed validation."""

    code: str = "RULE_VALIDATION_FAILED"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


# Transaction-related exceptions


class TransactionError(LedgerKernelError):
    """Base exception for ledger transaction errors."""

    code: str = "TRANSACTION_ERROR"


class TransactionNotFoundError(TransactionError):
    """Ledger transaction with given ID was not found."""

    code: str = "TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Ledger transaction not found: {transaction_id}")


# Tag-related exceptions


class TagError(LedgerKernelError):
    """Base exception for tag errors."""

    code: str = "TAG_ERROR"


class TagNotFoundError(TagError):
    """Tag with given ID was not found."""

    code: str = "TAG_NOT_FOUND"

    def __init__(self, tag_id: str):
        self.tag_id = tag_id
        super().__init__(f"Tag not found: {tag_id}")


class TagAlreadyExistsError(TagError):
    """Tag name is already in use."""

    code: str = "TAG_ALREADY_EXISTS"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Tag already exists: {name}")


# Run-related exceptions


class RunError(LedgerKernelError):
    """Base exception for recurrence run errors."""

    code: str = "RUN_ERROR"


class RunCancelledError(RunError):
    """The run observed its cancel signal and rolled back."""

    code: str = "RUN_CANCELLED"

    def __init__(self, as_of: str, rules_done: int):
        self.as_of = as_of
        self.rules_done = rules_done
        super().__init__(
            f"Recurrence run for {as_of} cancelled after {rules_done} rule(s); "
            f"rolled back"
        )
