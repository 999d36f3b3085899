"""
Error taxonomy shared by services and routers.

Messages are written to be shown to the user as-is.
"""


class BoardingHubError(Exception):
    """Base class for all domain errors"""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotAuthenticatedError(BoardingHubError):
    status_code = 401

    def __init__(self, message: str = "User not authenticated"):
        super().__init__(message)


class NotFoundError(BoardingHubError):
    status_code = 404


class AccessDeniedError(BoardingHubError):
    status_code = 403

    def __init__(self, message: str = "Access denied"):
        super().__init__(message)


class BusinessRuleError(BoardingHubError):
    status_code = 400


class PersistenceError(BoardingHubError):
    status_code = 500
