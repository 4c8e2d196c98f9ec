"""
Typed exception hierarchy for the drawer kernel.

Every error carries a machine-readable ``code`` class attribute and its
context as attributes, so callers catch by type and report by code
instead of parsing messages.

Hierarchy::

    DrawerKernelError (base)
    |
    +-- ConfigurationError
    |   +-- BranchNotSelectedError
    |   +-- InvalidDenominationTableError
    |   +-- UnknownDenominationError
    |
    +-- PersistenceError
    |   +-- TransientIOError
    |   +-- ClosingNotFoundError
    |   +-- DuplicateClosingError
    |   +-- StorageRejectedError
    |
    +-- SessionClosedError

Codes:

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Configuration   | BRANCH_NOT_SELECTED         | Save attempted with no branch
                | INVALID_DENOMINATION_TABLE  | Empty, unordered or duplicate denominations
                | UNKNOWN_DENOMINATION        | Count/take set for an id not in the table
----------------|-----------------------------|-----------------------------------------
Persistence     | TRANSIENT_IO                | Connection dropped / database unavailable
                | CLOSING_NOT_FOUND           | Record id does not exist
                | DUPLICATE_CLOSING           | Another record owns the same branch + date
                | STORAGE_REJECTED            | Database refused the statement (constraint, SQL)
----------------|-----------------------------|-----------------------------------------
Session         | SESSION_CLOSED              | I/O requested after the workspace closed

Input clamping is NOT an error: the ledger and planner silently coerce
malformed numeric entry and never raise for it.
"""

from datetime import date
from uuid import UUID


class DrawerKernelError(Exception):
    """
    Base exception for all drawer kernel errors.

    All subclasses must have a ``code`` class attribute for
    machine-readable error identification.
    """

    code: str = "DRAWER_KERNEL_ERROR"


# Configuration exceptions


class ConfigurationError(DrawerKernelError):
    """Base exception for configuration problems."""

    code: str = "CONFIGURATION_ERROR"


class BranchNotSelectedError(ConfigurationError):
    """A save was attempted without a branch; the only hard save blocker."""

    code: str = "BRANCH_NOT_SELECTED"

    def __init__(self, report_date: date | None = None):
        self.report_date = report_date
        super().__init__("No branch selected for cashier closing")


class InvalidDenominationTableError(ConfigurationError):
    """The configured denomination set is unusable."""

    code: str = "INVALID_DENOMINATION_TABLE"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid denomination table: {reason}")


class UnknownDenominationError(ConfigurationError):
    """A denomination id that is not part of the configured table."""

    code: str = "UNKNOWN_DENOMINATION"

    def __init__(self, denomination_id: str):
        self.denomination_id = denomination_id
        super().__init__(f"Unknown denomination: {denomination_id}")


# Persistence exceptions


class PersistenceError(DrawerKernelError):
    """Base exception for load/save failures."""

    code: str = "PERSISTENCE_ERROR"


class TransientIOError(PersistenceError):
    """
    A network or database failure that may succeed when retried.

    Raised by persistence services when the underlying driver reports a
    dropped or unavailable connection.
    """

    code: str = "TRANSIENT_IO"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Transient I/O failure during {operation}: {detail}")


class ClosingNotFoundError(PersistenceError):
    """No cashier closing exists with the requested id."""

    code: str = "CLOSING_NOT_FOUND"

    def __init__(self, record_id: UUID | str):
        self.record_id = str(record_id)
        super().__init__(f"Cashier closing not found: {record_id}")


class DuplicateClosingError(PersistenceError):
    """Another closing already exists for the same branch and date."""

    code: str = "DUPLICATE_CLOSING"

    def __init__(
        self,
        branch_name: str,
        report_date: date,
        existing_id: UUID | str,
    ):
        self.branch_name = branch_name
        self.report_date = report_date
        self.existing_id = str(existing_id)
        super().__init__(
            f"A cashier closing for {branch_name} on {report_date.isoformat()} "
            f"already exists ({existing_id})"
        )


class StorageRejectedError(PersistenceError):
    """
    The database refused the operation for a reason a retry will not fix,
    such as a constraint violation.
    """

    code: str = "STORAGE_REJECTED"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Database rejected {operation}: {detail}")


# Session exceptions


class SessionClosedError(DrawerKernelError):
    """I/O was requested after the owning workspace was closed."""

    code: str = "SESSION_CLOSED"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Session closed; {operation} ignored")
