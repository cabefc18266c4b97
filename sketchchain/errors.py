"""Typed failures raised by the game services.

Each error knows the HTTP status it maps to so the blueprints can turn
any of them into a JSON response without branching on message strings.
"""


class GameError(Exception):
    status_code = 400
    kind = 'game_error'

    def __init__(self, message, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        payload = {'error': self.message, 'kind': self.kind}
        payload.update(self.details)
        return payload


class ValidationError(GameError):
    status_code = 400
    kind = 'validation'


class NotFoundError(GameError):
    status_code = 404
    kind = 'not_found'


class ConflictError(GameError):
    status_code = 409
    kind = 'conflict'


class PreconditionError(GameError):
    status_code = 400
    kind = 'precondition'


class AuthorizationError(GameError):
    status_code = 403
    kind = 'forbidden'


class CapacityError(GameError):
    status_code = 409
    kind = 'capacity'


class StorageError(GameError):
    status_code = 500
    kind = 'storage'
