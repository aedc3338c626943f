class FinanceError(ValueError):
    status_code = 400


class ValidationError(FinanceError):
    status_code = 400


class AuthenticationError(FinanceError):
    status_code = 401


class NotFoundError(FinanceError):
    status_code = 404


class ConflictError(FinanceError):
    status_code = 409


class InternalInconsistencyError(FinanceError):
    """A stored row points at reference data that does not exist."""

    status_code = 500
