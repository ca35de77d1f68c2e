"""ERP integration exceptions."""

from django.core.exceptions import ImproperlyConfigured


class ERPError(Exception):
    """Base exception for ERP integration errors."""

    def __init__(
        self,
        message: str,
        model: str | None = None,
        method: str | None = None,
    ) -> None:
        self.message = message
        self.model = model
        self.method = method
        self.entity: str | None = None
        super().__init__(message)

    def annotate(self, entity: str) -> "ERPError":
        """Tag the error with the catalog entity being read when it happened."""
        self.entity = entity
        return self


class TransientFailure(ERPError):
    """The ERP could not be reached in time (connection, timeout, 5xx gateway)."""

    def __init__(
        self,
        message: str,
        model: str | None = None,
        method: str | None = None,
        attempts: int = 1,
    ) -> None:
        super().__init__(message, model, method)
        self.attempts = attempts


class RemoteRejection(ERPError):
    """The ERP answered with a business error (validation, access, missing record)."""

    def __init__(
        self,
        message: str,
        model: str | None = None,
        method: str | None = None,
        code: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, model, method)
        self.code = code
        self.status_code = status_code

    @property
    def is_duplicate_key(self) -> bool:
        """True when the ERP refused a write because a unique key already exists."""
        text = self.message.lower()
        return (
            self.code == "UniqueViolation"
            or "duplicate key" in text
            or "unique constraint" in text
        )


class CallNotAllowed(ERPError):
    """The (model, method) pair is not on the allow-list."""


class ConfigurationFailure(ERPError, ImproperlyConfigured):
    """ERP connection details are missing or invalid."""
