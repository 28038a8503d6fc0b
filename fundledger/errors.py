"""Normalized accounting error types."""


class AccountingError(Exception):
    """Base class for all accounting errors."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class ValidationError(AccountingError):
    """Malformed input at a boundary. Nothing was written."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        field: str | None = None,
    ) -> None:
        super().__init__(message, code)
        self.field = field


class NotFoundError(AccountingError):
    """Referenced client or period snapshot does not exist."""

    pass


class DataGapError(AccountingError):
    """No balance history available to close a period."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        client_id: str | None = None,
        period: str | None = None,
    ) -> None:
        super().__init__(message, code)
        self.client_id = client_id
        self.period = period


class NotificationFailure(AccountingError):
    """Report delivery failed after all retries."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        recipient: str | None = None,
        attempts: int = 0,
    ) -> None:
        super().__init__(message, code)
        self.recipient = recipient
        self.attempts = attempts
