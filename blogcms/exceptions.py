"""
Error taxonomy shared by the validation layer, the record store adapter
and the services.

None of these escape a service function: ``blogcms.envelope.failure_from``
turns each of them into a failure envelope at the service boundary.
"""


class CMSError(Exception):
    """Base class for every error raised inside the CMS core."""


class ValidationError(CMSError):
    """Input failed a schema; carries per-field messages."""

    def __init__(self, errors: dict[str, list[str]], message: str = "Invalid input"):
        self.errors = errors
        self.message = message
        super().__init__(message)


class NotFoundError(CMSError):
    """No record matches the given lookup key."""

    def __init__(self, entity: str, key: str, value: object):
        self.entity = entity
        self.key = key
        self.value = value
        super().__init__(f"{entity} not found with {key}: {value}")


class ConflictError(CMSError):
    """A unique field (email, slug, name) is already taken."""

    def __init__(
        self,
        entity: str,
        field: str | None = None,
        value: object = None,
        message: str | None = None,
    ):
        self.entity = entity
        self.field = field
        self.value = value
        if message is None and field is None:
            message = f"{entity} conflicts with an existing record"
        elif message is None:
            message = f"{entity} with {field} '{value}' already exists"
        super().__init__(message)


class StoreError(CMSError):
    """Unclassified persistence failure."""
