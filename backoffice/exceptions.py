"""
Domain errors raised by the service layer and rendered by the API
"""


class BackofficeError(Exception):
    """Base error carrying a user-facing message and HTTP status"""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BackofficeError, ValueError):
    status_code = 400


class NotFoundError(BackofficeError, LookupError):
    status_code = 404


class DuplicateGenerationError(BackofficeError):
    status_code = 409


class NoBillableCustomersError(BackofficeError):
    status_code = 400


class PartialCompanyPaymentError(BackofficeError):
    status_code = 400


class CalculationError(BackofficeError):
    status_code = 500
