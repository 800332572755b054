# Copyright (c) 2023-2024 Datalayer, Inc.
#
# BSD 3-Clause License

"""
Exceptions raised by the harness.

Hard failures (everything except ``SoftAssertionError`` being deferred)
propagate to the test immediately. Soft snapshot mismatches are collected
and raised once, at the end of the test, as a single ``SoftAssertionError``.
"""


class HarnessError(Exception):
    """Base class for harness failures."""


class TransferError(HarnessError):
    """A fixture could not be written to or removed from the server."""

    def __init__(self, message: str, path: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.path = path
        self.status_code = status_code


class NotFoundError(HarnessError):
    """A document or UI element does not exist."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class ActionError(HarnessError):
    """A scripted user action failed or timed out."""

    def __init__(self, message: str, step: int | None = None, action: str | None = None):
        super().__init__(message)
        self.step = step
        self.action = action


class SnapshotMismatchError(HarnessError, AssertionError):
    """A snapshot differs from its baseline beyond the configured tolerance."""

    def __init__(self, message: str, comparison=None):
        super().__init__(message)
        self.comparison = comparison


class SoftAssertionError(HarnessError, AssertionError):
    """One or more soft assertions failed during a test."""

    def __init__(self, failures: list[str]):
        self.failures = list(failures)
        lines = [f"{len(self.failures)} soft assertion(s) failed:"]
        lines.extend(f"  - {failure}" for failure in self.failures)
        super().__init__("\n".join(lines))
