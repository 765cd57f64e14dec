"""
Application errors.

Every error carries a message that is safe to show to API clients and the
HTTP status that classifies it. Handlers registered in ``placeshare.main``
turn them into ``{"message": ...}`` responses.
"""

from typing import Optional


class PlaceShareError(Exception):
    status_code = 500
    default_message = "Something went wrong, please try again."

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(PlaceShareError):
    status_code = 422
    default_message = "Invalid inputs passed, please check your data."


class NotFoundError(PlaceShareError):
    status_code = 404
    default_message = "Could not find the requested resource."


class AuthenticationError(PlaceShareError):
    status_code = 401
    default_message = "Authentication failed."


class AuthorizationError(PlaceShareError):
    status_code = 403
    default_message = "You are not allowed to modify this place."


class InternalError(PlaceShareError):
    status_code = 500


class GeocodingError(PlaceShareError):
    """Raised by the geocoding adapter; the status depends on the cause."""

    status_code = 422
    default_message = "Could not find location for the specified address."
