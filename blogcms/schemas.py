import re
import unicodedata
from datetime import datetime
from typing import Annotated, Any, Optional

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    EmailStr,
    Field,
    HttpUrl,
    StringConstraints,
    ValidationInfo,
    field_validator,
    model_validator,
)

from blogcms.config import settings
from blogcms.models import Robots, Role
from blogcms.security import MAX_PASSWORD_BYTES

SLUG_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"

_SLUG_STRIP_RE = re.compile(r"[^a-z0-9\s_-]")
_SLUG_SPACE_RE = re.compile(r"[\s_]+")
_SLUG_DASH_RE = re.compile(r"-+")


def slugify(text: str) -> str:
    """Return a URL-safe, lowercase slug derived from *text*."""
    # Accented letters fold to their ASCII base; anything else non-ASCII is dropped.
    text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    text = _SLUG_STRIP_RE.sub("", text.lower().strip())
    text = _SLUG_SPACE_RE.sub("-", text)
    return _SLUG_DASH_RE.sub("-", text).strip("-")


# ---------------------------------------------------------------------------
# Field types
# ---------------------------------------------------------------------------

def _blank_to_none(value: Any) -> Any:
    # HTML forms send "" for untouched inputs.
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _url_to_str(value: Optional[HttpUrl]) -> Optional[str]:
    return str(value) if value is not None else None


def _split_tags(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, str):
        return value.split(",")
    return value


def _within_bcrypt_limit(value: str) -> str:
    if len(value.encode()) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes long")
    return value


def _derived_slug(source: str, what: str) -> str:
    slug = slugify(source)
    if not re.fullmatch(SLUG_PATTERN, slug):
        raise ValueError(f"Cannot derive a slug from this {what}; supply one")
    return slug


def _dedupe_tags(tags: list[str]) -> list[str]:
    seen: dict[str, None] = {}
    for tag in tags:
        if tag:
            seen.setdefault(tag, None)
    return list(seen)


NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
Slug = Annotated[
    str,
    StringConstraints(strip_whitespace=True, to_lower=True, max_length=350, pattern=SLUG_PATTERN),
]
Password = Annotated[
    str,
    StringConstraints(min_length=settings.PASSWORD_MIN_LENGTH, max_length=MAX_PASSWORD_BYTES),
    AfterValidator(_within_bcrypt_limit),
]
OptionalUrl = Annotated[
    Optional[HttpUrl], BeforeValidator(_blank_to_none), AfterValidator(_url_to_str)
]
OptionalPassword = Annotated[Optional[Password], BeforeValidator(_blank_to_none)]
OptionalTimestamp = Annotated[Optional[datetime], BeforeValidator(_blank_to_none)]
Tags = Annotated[
    list[Annotated[str, StringConstraints(strip_whitespace=True, max_length=50)]],
    BeforeValidator(_split_tags),
    AfterValidator(_dedupe_tags),
]


# --- User ---

class UserBase(BaseModel):
    name: Annotated[NonEmptyStr, StringConstraints(max_length=150)]
    email: EmailStr
    role: Role = Role.SUBSCRIBER
    image: OptionalUrl = None

    @field_validator("role", mode="before")
    @classmethod
    def _normalise_role(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return Role.SUBSCRIBER
        if isinstance(value, str):
            return value.strip().lower()
        return value


class UserCreate(UserBase):
    password: Password
    password_confirmation: str

    @field_validator("password_confirmation")
    @classmethod
    def _passwords_match(cls, value: str, info: ValidationInfo) -> str:
        password = info.data.get("password")
        if password is not None and value != password:
            raise ValueError("Passwords do not match")
        return value


class UserUpdate(UserBase):
    """Password fields are optional; both empty keeps the stored credential."""

    password: OptionalPassword = None
    password_confirmation: Annotated[
        Optional[str], BeforeValidator(_blank_to_none)
    ] = Field(None, validate_default=True)

    @field_validator("password_confirmation")
    @classmethod
    def _passwords_match(cls, value: Optional[str], info: ValidationInfo) -> Optional[str]:
        if "password" not in info.data:
            # The password itself failed; that error is already reported.
            return value
        password = info.data["password"]
        if password is None and value is None:
            return value
        if password is None:
            raise ValueError("Enter the new password as well as its confirmation")
        if value is None:
            raise ValueError("Please confirm the new password")
        if value != password:
            raise ValueError("Passwords do not match")
        return value

    @property
    def changes_password(self) -> bool:
        return self.password is not None


# --- Category ---

class CategoryCreate(BaseModel):
    name: Annotated[NonEmptyStr, StringConstraints(max_length=100)]
    slug: Annotated[Optional[Slug], BeforeValidator(_blank_to_none)] = None

    @model_validator(mode="after")
    def _derive_slug(self) -> "CategoryCreate":
        if self.slug is None:
            self.slug = _derived_slug(self.name, "name")
        return self


# --- Article ---

class ArticleCreate(BaseModel):
    title: Annotated[NonEmptyStr, StringConstraints(max_length=300)]
    slug: Annotated[Optional[Slug], BeforeValidator(_blank_to_none)] = None
    description: Annotated[NonEmptyStr, StringConstraints(max_length=500)]
    content: NonEmptyStr
    image: OptionalUrl = None
    category_id: int
    author_id: int
    tags: Tags = []
    robots: Robots = Robots.INDEX_FOLLOW
    published_at: OptionalTimestamp = None

    @field_validator("robots", mode="before")
    @classmethod
    def _default_robots(cls, value: Any) -> Any:
        return _blank_to_none(value) or Robots.INDEX_FOLLOW

    @model_validator(mode="after")
    def _derive_slug(self) -> "ArticleCreate":
        if self.slug is None:
            self.slug = _derived_slug(self.title, "title")
        return self


class ArticleUpdate(BaseModel):
    """Every field optional; only fields present in the input are applied."""

    title: Optional[Annotated[NonEmptyStr, StringConstraints(max_length=300)]] = None
    slug: Optional[Slug] = None
    description: Optional[Annotated[NonEmptyStr, StringConstraints(max_length=500)]] = None
    content: Optional[NonEmptyStr] = None
    image: OptionalUrl = None
    category_id: Optional[int] = None
    author_id: Optional[int] = None
    tags: Optional[Tags] = None
    robots: Optional[Robots] = None
    published_at: OptionalTimestamp = None

    @field_validator("title", "slug", "description", "content", "category_id", "robots", "tags")
    @classmethod
    def _not_clearable(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("This field cannot be cleared")
        return value
