"""Tests for ledger_kernel.exceptions -- codes, hierarchy and structured fields."""

import pytest

from ledger_kernel import exceptions as exc


ALL_ERRORS = [
    obj
    for obj in vars(exc).values()
    if isinstance(obj, type) and issubclass(obj, exc.LedgerKernelError)
]


class TestHierarchy:
    @pytest.mark.parametrize("error_type", ALL_ERRORS, ids=lambda t: t.__name__)
    def test_every_error_has_a_code(self, error_type):
        assert error_type.code
        assert error_type.code == error_type.code.upper()

    def test_codes_are_unique(self):
        codes = [t.code for t in ALL_ERRORS]
        assert len(codes) == len(set(codes))

    def test_parents(self):
        assert issubclass(exc.StoreUnavailableError, exc.StoreError)
        assert issubclass(exc.DuplicateOccurrenceError, exc.StoreError)
        assert issubclass(exc.UnsupportedFrequencyError, exc.RecurrenceError)
        assert issubclass(exc.InvalidIntervalError, exc.RecurrenceError)
        assert issubclass(exc.RuleValidationError, exc.RuleError)
        assert issubclass(exc.RunCancelledError, exc.RunError)


class TestStructuredFields:
    def test_store_unavailable(self):
        error = exc.StoreUnavailableError("recurrence run", "connection refused")
        assert error.operation == "recurrence run"
        assert error.reason == "connection refused"
        assert "connection refused" in str(error)

    def test_run_cancelled(self):
        error = exc.RunCancelledError("2025-03-01", 4)
        assert error.as_of == "2025-03-01"
        assert error.rules_done == 4
        assert "rolled back" in str(error)

    def test_rule_validation(self):
        error = exc.RuleValidationError("interval_n", "must be between 1 and 365")
        assert error.field == "interval_n"
        assert error.code == "RULE_VALIDATION_FAILED"
