"""
User service: lifecycle of the User aggregate and its credential.

The raw password never leaves this module: it is hashed with bcrypt on
create and on an explicit password change, and no payload built here
contains the hash.  Which validation schema applies (create or update) is
decided once in ``save_user`` from whether the user already exists.
"""
import logging
from typing import Any, Mapping, Optional

from email_validator import EmailNotValidError, validate_email

from blogcms.envelope import Envelope, failure_from, success
from blogcms.exceptions import CMSError, ConflictError, NotFoundError, ValidationError
from blogcms.models import User
from blogcms.schemas import UserCreate, UserUpdate
from blogcms.security import hash_password, verify_password
from blogcms.store import RecordStore
from blogcms.validation import NON_FIELD_ERRORS, USER_SCHEMAS, SchemaMode, user_mode_for, validate

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _user_to_dict(user: User) -> dict:
    """Serialise a User to its safe fields; the credential is never included."""
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role.value,
        "image": user.image,
        "created_at": user.created_at.isoformat() if user.created_at else None,
        "updated_at": user.updated_at.isoformat() if user.updated_at else None,
    }


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _lookup_email(email: str) -> str:
    """Normalise *email* the way stored addresses were normalised on write."""
    email = email.strip()
    try:
        return validate_email(email, check_deliverability=False).normalized
    except EmailNotValidError:
        # Cannot match any stored address; look it up as given.
        return email


async def _get_user(store: RecordStore, key: str, value: Any) -> User:
    user = await store.users.find_unique({key: value})
    if user is None:
        raise NotFoundError("User", key, value)
    return user


async def _ensure_email_available(
    store: RecordStore, email: str, exclude_id: Optional[int] = None
) -> None:
    where: dict[str, Any] = {"email": email}
    if exclude_id is not None:
        where["id__ne"] = exclude_id
    if await store.users.count(where):
        raise ConflictError("User", "email", email)


async def _insert_user(store: RecordStore, values: UserCreate) -> User:
    await _ensure_email_available(store, values.email)
    return await store.users.create(
        {
            "name": values.name,
            "email": values.email,
            "role": values.role,
            "image": values.image,
            "password_hash": hash_password(values.password),
        }
    )


async def _apply_update(store: RecordStore, user: User, values: UserUpdate) -> User:
    if values.email != user.email:
        await _ensure_email_available(store, values.email, exclude_id=user.id)

    changes: dict[str, Any] = {"name": values.name, "email": values.email}
    for optional in ("role", "image"):
        if optional in values.model_fields_set:
            changes[optional] = getattr(values, optional)
    # Both password fields empty: the stored credential is left alone.
    if values.changes_password:
        changes["password_hash"] = hash_password(values.password)

    return await store.users.update({"id": user.id}, changes)


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def save_user(
    store: RecordStore, data: Mapping[str, Any], user_id: Optional[int] = None
) -> Envelope:
    """
    Create a user, or update the one identified by *user_id*.

    The stored record (or its absence) selects the schema: the create
    schema requires a matching password pair, the update schema accepts an
    empty pair and then keeps the current credential.  Nothing is written
    when validation fails.
    """
    try:
        existing = await _get_user(store, "id", user_id) if user_id is not None else None
        mode = user_mode_for(existing)
        values = validate(USER_SCHEMAS[mode], data).unwrap()

        if mode is SchemaMode.CREATE:
            user = await _insert_user(store, values)
        else:
            user = await _apply_update(store, existing, values)
    except CMSError as exc:
        return failure_from("user", exc)

    if mode is SchemaMode.CREATE:
        logger.info("User created id=%s role=%s", user.id, user.role.value)
        return success("user", _user_to_dict(user), "User created successfully")
    logger.info("User updated id=%s password_changed=%s", user.id, values.changes_password)
    return success("user", _user_to_dict(user), "User updated successfully")


async def create_user(store: RecordStore, data: Mapping[str, Any]) -> Envelope:
    return await save_user(store, data)


async def update_user(store: RecordStore, user_id: int, data: Mapping[str, Any]) -> Envelope:
    return await save_user(store, data, user_id=user_id)


async def get_users(store: RecordStore) -> Envelope:
    """Return all users, newest first."""
    try:
        users = await store.users.find_many(order_by=("-created_at", "-id"))
    except CMSError as exc:
        return failure_from("users", exc, many=True)
    return success("users", [_user_to_dict(u) for u in users], "Users fetched successfully")


async def get_user(store: RecordStore, user_id: int) -> Envelope:
    try:
        user = await _get_user(store, "id", user_id)
    except CMSError as exc:
        return failure_from("user", exc)
    return success("user", _user_to_dict(user), "User fetched successfully")


async def get_user_by_email(store: RecordStore, email: str) -> Envelope:
    try:
        user = await _get_user(store, "email", _lookup_email(email))
    except CMSError as exc:
        return failure_from("user", exc)
    return success("user", _user_to_dict(user), "User fetched successfully")


async def delete_user(store: RecordStore, user_id: int) -> Envelope:
    """
    Delete a user.  Their articles survive with no author (the relation
    is a weak reference).
    """
    try:
        user = await _get_user(store, "id", user_id)
        payload = _user_to_dict(user)
        await store.users.delete({"id": user_id})
    except CMSError as exc:
        return failure_from("user", exc)

    logger.info("User deleted id=%s", user_id)
    return success("user", payload, "User deleted successfully")


async def check_credentials(store: RecordStore, email: str, password: str) -> Envelope:
    """
    Verify *password* for the account registered under *email*.

    The failure message is the same whether the email is unknown or the
    password is wrong.
    """
    try:
        user = await store.users.find_unique({"email": _lookup_email(email)})
        if user is None or not verify_password(password, user.password_hash):
            raise ValidationError({NON_FIELD_ERRORS: [INVALID_CREDENTIALS]}, message=INVALID_CREDENTIALS)
    except CMSError as exc:
        return failure_from("user", exc)
    return success("user", _user_to_dict(user), "Credentials verified")
