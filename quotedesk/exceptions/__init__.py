"""Custom exceptions for the QuoteDesk application."""

class QuoteDeskError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv

class BusinessLogicError(QuoteDeskError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)

class ValidationError(BusinessLogicError):
    """Structurally invalid input to a calculation or a quote mutation."""
    def __init__(self, message, field=None):
        payload = {'field': field} if field else None
        super().__init__(message, 400, payload)
        self.field = field

class NotFoundError(QuoteDeskError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)

class InvalidStateTransitionError(BusinessLogicError):
    """Raised when the quote status machine does not allow a transition."""
    def __init__(self, current, requested):
        self.current = current
        self.requested = requested
        message = f"Cannot change quote status from '{current}' to '{requested}'"
        super().__init__(message, 409, {'current': current, 'requested': requested})

class ImmutableStateError(BusinessLogicError):
    """Raised when the structure of an approved or expired quote is edited."""
    def __init__(self, status):
        self.status = status
        super().__init__(f"Quote is {status} and can no longer be edited", 409, {'current': status})

class ConcurrentModificationError(QuoteDeskError):
    """Raised when a stale quote version is saved. Reload and retry."""
    retryable = True

    def __init__(self, quote_id, expected_version, actual_version):
        self.quote_id = quote_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        message = (
            f"Quote {quote_id} was modified by someone else "
            f"(expected version {expected_version}, found {actual_version})"
        )
        super().__init__(message, 409, {'retryable': True, 'version': actual_version})

class UnauthorizedError(QuoteDeskError):
    """Raised when a user lacks permission for an action."""
    def __init__(self, message="Unauthorized access"):
        super().__init__(message, 403)
