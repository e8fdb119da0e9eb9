"""Error taxonomy shared by the marketplace apps.

Each class carries the HTTP status it maps to; ApiErrorMiddleware renders
them as JSON so views can simply let them propagate.
"""


class MarketplaceError(Exception):
    status_code = 400

    def __init__(self, message="", status_code=None):
        super().__init__(message)
        self.message = message or self.__class__.__name__
        if status_code is not None:
            self.status_code = status_code

    def __str__(self):
        return self.message


class ValidationError(MarketplaceError):
    status_code = 400


class NotFound(MarketplaceError):
    status_code = 404


class Forbidden(MarketplaceError):
    status_code = 403


class Conflict(MarketplaceError):
    status_code = 409


class InsufficientFunds(MarketplaceError):
    status_code = 400


class SignatureInvalid(MarketplaceError):
    status_code = 400


class DownstreamFailure(MarketplaceError):
    status_code = 502
