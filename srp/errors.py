class SrpError(Exception):
    """Base class for errors raised by the SRP core."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInputError(SrpError):
    status_code = 400


class NotFoundError(SrpError):
    status_code = 404


class IllegalTransitionError(SrpError):
    status_code = 409


class DuplicateKillmailError(SrpError):
    status_code = 409


class ConcurrentUpdateError(SrpError):
    status_code = 409


class StoreUnavailableError(SrpError):
    """Database write failed; safe for the caller to retry."""

    status_code = 503
