# selffin/exceptions.py


class DomainError(Exception):
    """Base class for scheduling and project errors."""

    def __init__(self, message: str, *, code: str = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__


class ValidationError(DomainError):
    """Raised when input data is invalid (unknown dependency, bad date, ...)."""


class NotFoundError(DomainError):
    """Raised when a project, task or schedule does not exist."""


class BusinessRuleError(DomainError):
    """Raised when a scheduling rule is violated (e.g. circular dependencies)."""
