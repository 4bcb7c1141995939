"""
Custom exception classes for the application.

Only authentication failures surface as exceptions.
Per-connection transport failures are handled inside the connection tasks
and never reach callers of the registry.
"""


class AuthenticationError(Exception):
    """
    Authentication failed.

    Raised when a bearer token is missing, expired or cannot be decoded.

    Attributes:
        reason: A machine-readable error code (e.g. 'token_expired')
        detail: Human-readable error details
    """

    def __init__(self, reason: str, detail: str) -> None:
        self.reason = reason
        self.detail = detail
        super().__init__(f"{reason}: {detail}")
