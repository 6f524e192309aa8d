"""
Response envelope returned by every service function.

Serialised shape::

    {"ok": bool, "<payload key>": payload | None | [], "message": str}

The payload key differs per operation (``article``, ``articles``,
``metadata``, ``user``, ``users`` ...) while ``ok`` and ``message`` are
uniform.  Validation failures additionally carry ``errors``, a mapping of
field name to messages, so forms can show per-field feedback.
"""
import enum
import logging
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, Field, model_serializer

from blogcms.exceptions import (
    CMSError,
    ConflictError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

GENERIC_ERROR_MESSAGE = "Something went wrong !, check logs for details"


class Reason(str, enum.Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    STORE = "store"


class Envelope(BaseModel, Generic[T]):
    ok: bool
    key: str = Field(exclude=True)
    payload: Optional[T] = None
    message: str
    errors: dict[str, list[str]] | None = None
    # Failure kind; lets transports pick a status code without parsing text.
    reason: Reason | None = Field(default=None, exclude=True)

    @model_serializer(mode="wrap")
    def _serialize(self, handler) -> dict[str, Any]:
        data = handler(self)
        out = {"ok": data["ok"], self.key: data["payload"], "message": data["message"]}
        if self.errors is not None:
            out["errors"] = data["errors"]
        return out


def success(key: str, payload: Any, message: str) -> Envelope:
    return Envelope(ok=True, key=key, payload=payload, message=message)


def failure_from(key: str, exc: CMSError, *, many: bool = False) -> Envelope:
    """
    Normalise a CMS error into a failure envelope.

    *many* selects the empty payload: ``[]`` for list operations, ``None``
    otherwise.  Store errors are logged with their traceback and surfaced
    with a generic message so storage details never reach the caller.
    """
    empty: Any = [] if many else None

    if isinstance(exc, ValidationError):
        logger.debug("Validation failed for %s: %s", key, exc.errors)
        return Envelope(
            ok=False,
            key=key,
            payload=empty,
            message=exc.message,
            errors=exc.errors,
            reason=Reason.VALIDATION,
        )
    if isinstance(exc, NotFoundError):
        return Envelope(ok=False, key=key, payload=empty, message=str(exc), reason=Reason.NOT_FOUND)
    if isinstance(exc, ConflictError):
        return Envelope(ok=False, key=key, payload=empty, message=str(exc), reason=Reason.CONFLICT)

    logger.error("Store failure while handling %s", key, exc_info=exc)
    return Envelope(
        ok=False,
        key=key,
        payload=empty,
        message=GENERIC_ERROR_MESSAGE,
        reason=Reason.STORE,
    )


__all__ = ["Envelope", "Reason", "success", "failure_from", "GENERIC_ERROR_MESSAGE"]
