"""
Service-layer exceptions shared by the CRUD services.

Routers translate these to HTTP responses:
- NotFoundError -> 404
- DuplicateError -> 409
- PermissionDeniedError -> 403
- ValueError -> 400
"""


class NotFoundError(Exception):
    """Record does not exist in the caller's organisation."""

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found")


class DuplicateError(Exception):
    """Record collides with an existing one on a unique business field."""

    def __init__(self, message: str, field: str):
        self.message = message
        self.field = field
        super().__init__(message)


class PermissionDeniedError(Exception):
    """Caller may not perform this change on the record."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)
