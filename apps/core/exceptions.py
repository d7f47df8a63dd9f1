# apps/core/exceptions.py

"""
Typed errors for board operations

Each error carries a stable machine-readable `kind`, the HTTP status used by
the JSON API and a human-readable message. They are raised before any
mutation (validation, authorization) or inside the transaction (aborting it),
and converted to responses by `apps.core.permissions.api_view`.
"""


class BoardError(Exception):
    kind = 'internal'
    status_code = 500
    default_message = 'Internal server error'
    retryable = False

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self):
        return {
            'kind': self.kind,
            'message': self.message,
            'retryable': self.retryable,
        }


class Unauthenticated(BoardError):
    kind = 'unauthenticated'
    status_code = 401
    default_message = 'Authentication required'


class Forbidden(BoardError):
    kind = 'forbidden'
    status_code = 403
    default_message = 'Access denied'


class NotFound(BoardError):
    kind = 'not_found'
    status_code = 404
    default_message = 'Not found'


class InvalidPosition(BoardError):
    kind = 'invalid_position'
    status_code = 422
    default_message = 'Target index is out of range'


class InvalidTarget(BoardError):
    kind = 'invalid_target'
    status_code = 400
    default_message = 'Invalid destination'


class Conflict(BoardError):
    kind = 'conflict'
    status_code = 409
    default_message = 'Already exists'


class Busy(BoardError):
    kind = 'busy'
    status_code = 503
    default_message = 'The list is busy, try again'
    retryable = True


class BadRequest(BoardError):
    kind = 'bad_request'
    status_code = 400
    default_message = 'Invalid request'

    def __init__(self, message=None, errors=None):
        super().__init__(message)
        self.errors = errors or {}

    def to_dict(self):
        data = super().to_dict()
        if self.errors:
            data['errors'] = self.errors
        return data


class Internal(BoardError):
    pass
