class LibraryError(Exception):
    """Base class for failures reported back to the caller."""

    status_code = 500

    def __init__(self, message, fields=None):
        super().__init__(message)
        self.message = message
        self.fields = fields or {}

    def to_dict(self):
        body = {'error': self.message}
        if self.fields:
            body['fields'] = self.fields
        return body


class ValidationError(LibraryError):
    status_code = 400


class AuthenticationRequired(LibraryError):
    status_code = 401


class PermissionDenied(LibraryError):
    status_code = 403


class NotFoundError(LibraryError):
    status_code = 404


class ConflictError(LibraryError):
    status_code = 409
