from django.core.exceptions import (ObjectDoesNotExist, PermissionDenied,
                                    ValidationError)

# ----------------------------------------------------------------
# Validation failures (422): surfaced with the violated rule,
# never retried automatically
# ----------------------------------------------------------------


class UnbalancedJournalError(ValidationError):
    """Raised when a JournalEntry fails the double-entry balance check."""
    pass


class FutureDateError(ValidationError):
    """Raised when a non-privileged actor dates a document after today."""
    pass


class OverdraftError(ValidationError):
    """Raised when approval would push a cash/bank account below zero."""

    def __init__(self, account, projected_balance):
        self.account = account
        self.projected_balance = projected_balance
        super().__init__(
            f"Transaction rejected: {account.name} balance ({projected_balance}) "
            "would be negative. Overdraft not allowed for this account."
        )


# ----------------------------------------------------------------
# Caller problems that are not validation
# ----------------------------------------------------------------


class ForbiddenError(PermissionDenied):
    """Role lacks the capability for the action in the current status (403)."""
    pass


class NotFoundError(ObjectDoesNotExist):
    """Entry, account or company id does not exist in the tenant (404)."""
    pass


class ConflictError(Exception):
    """Uniqueness violation that survived the internal retries (409)."""
    pass


# ----------------------------------------------------------------
# Server side failures
# ----------------------------------------------------------------


class PropagationError(Exception):
    """Balance propagation failed inside the approval transaction (500)."""

    def __init__(self, message, entry_id=None, account_id=None):
        self.entry_id = entry_id
        self.account_id = account_id
        super().__init__(message)


class StoreUnavailableError(Exception):
    """The ledger database cannot be reached (503). Never masked."""
    pass


# Outward status codes, most specific class first
ERROR_STATUS = (
    (ForbiddenError, 403),
    (PermissionDenied, 403),
    (NotFoundError, 404),
    (ObjectDoesNotExist, 404),
    (ValidationError, 422),
    (ConflictError, 409),
    (StoreUnavailableError, 503),
    (PropagationError, 500),
)


def error_status(exc):
    """Map a ledger exception to the status code the outer layer returns."""
    for exc_class, status in ERROR_STATUS:
        if isinstance(exc, exc_class):
            return status
    return 500
