"""
Domain errors raised by the service layer.

They subclass ValueError so callers that only know about ValueError keep
treating them as bad input; the routers map the specific ones to 404/409.
"""


class AccountNotFoundError(ValueError):
    pass


class AccountAlreadyExistsError(ValueError):
    pass


class ConcurrencyConflictError(ValueError):
    """The account row could not be locked or was modified concurrently."""
