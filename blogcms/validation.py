"""
Pure validation entry point.

``validate(schema, raw)`` classifies a mapping of raw field values (form
payload or JSON body) into either a normalised schema instance or a map of
field name -> error messages.  It never raises for bad data and does no I/O.

User input is validated with one of two schemas; which one is decided once,
at the service entry point, from whether a stored user already exists::

    mode = user_mode_for(existing)
    result = validate(USER_SCHEMAS[mode], raw)
"""
import enum
from dataclasses import dataclass, field
from typing import Any, Generic, Mapping, Optional, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from blogcms.exceptions import ValidationError
from blogcms.schemas import UserCreate, UserUpdate

S = TypeVar("S", bound=BaseModel)

# Errors not tied to a single input field (e.g. model-level checks).
NON_FIELD_ERRORS = "non_field_errors"


class SchemaMode(enum.Enum):
    CREATE = "create"
    UPDATE = "update"


USER_SCHEMAS: dict[SchemaMode, type[BaseModel]] = {
    SchemaMode.CREATE: UserCreate,
    SchemaMode.UPDATE: UserUpdate,
}


def user_mode_for(existing: Optional[object]) -> SchemaMode:
    """Pick the user schema variant from the presence of a stored record."""
    return SchemaMode.UPDATE if existing is not None else SchemaMode.CREATE


@dataclass(frozen=True)
class ValidationResult(Generic[S]):
    data: Optional[S] = None
    errors: dict[str, list[str]] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def unwrap(self) -> S:
        """Return the validated data or raise ``ValidationError``."""
        if self.errors or self.data is None:
            raise ValidationError(self.errors)
        return self.data


def _message(error: dict[str, Any]) -> str:
    # Strip pydantic's "Value error, " prefix from messages we raised ourselves.
    if error["type"] == "value_error" and "error" in error.get("ctx", {}):
        return str(error["ctx"]["error"])
    return error["msg"]


def collect_errors(exc: PydanticValidationError) -> dict[str, list[str]]:
    errors: dict[str, list[str]] = {}
    for error in exc.errors():
        name = ".".join(str(part) for part in error["loc"]) or NON_FIELD_ERRORS
        errors.setdefault(name, []).append(_message(error))
    return errors


def validate(schema: type[S], raw: Mapping[str, Any]) -> ValidationResult[S]:
    try:
        return ValidationResult(data=schema.model_validate(dict(raw)))
    except PydanticValidationError as exc:
        return ValidationResult(errors=collect_errors(exc))
