from typing import Optional

from fastapi import Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from blogcms.database import get_db
from blogcms.store import SQLAlchemyRecordStore

_PUBLISHED_PATTERN = "^(true|false|all)$"


async def get_store(db: AsyncSession = Depends(get_db)) -> SQLAlchemyRecordStore:
    """Bind a record store to the request-scoped session."""
    return SQLAlchemyRecordStore(db)


def _parse_published(value: str) -> Optional[bool]:
    return None if value == "all" else value == "true"


class PublishFilterParams:
    """
    Reusable FastAPI dependency that parses the ``published`` query
    parameter into the tri-state filter the article service expects.

    Attributes
    ----------
    is_published:
        ``True`` for published articles only (the default for public
        listings), ``False`` for drafts only, ``None`` for everything.
    """

    def __init__(
        self,
        published: str = Query(
            "true",
            pattern=_PUBLISHED_PATTERN,
            description="Publish state filter: 'true', 'false' or 'all'.",
        ),
    ) -> None:
        self.is_published = _parse_published(published)


class IndexFilterParams(PublishFilterParams):
    """Same filter for the admin index, which shows every article by default."""

    def __init__(
        self,
        published: str = Query(
            "all",
            pattern=_PUBLISHED_PATTERN,
            description="Publish state filter: 'true', 'false' or 'all'.",
        ),
    ) -> None:
        super().__init__(published)
