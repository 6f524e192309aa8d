"""
Record store adapter: the persistence port the services depend on.

Services never build SQL themselves: they call ``find_many``,
``find_unique``, ``create``, ``update``, ``delete`` and ``count`` on one of
the store's collections (``articles``, ``categories``, ``tags``, ``users``).

Filters
-------
``where`` is a mapping of column name to value.  Plain keys compare for
equality (``None`` compares with IS NULL); a ``__isnull`` suffix takes a
bool and a ``__ne`` suffix compares for inequality::

    await store.articles.find_many({"published_at__isnull": False})

Inclusion
---------
``include`` names relationships to expand.  All relationships are declared
``lazy="raise"`` so touching one that was not included fails loudly; many-to-one
relations are joined, collections are fetched with ``selectinload`` to
avoid N+1 queries.

Error translation
-----------------
``IntegrityError`` becomes ``ConflictError`` and any other
``SQLAlchemyError`` becomes ``StoreError``.  The session is rolled back
before either is raised so the request's transaction stays usable.
"""
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Generic, Iterable, Mapping, Optional, Sequence, TypeVar

from sqlalchemy import func, inspect, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from blogcms.database import Base
from blogcms.exceptions import ConflictError, NotFoundError, StoreError
from blogcms.models import Article, Category, Tag, User

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=Base)

Where = Optional[Mapping[str, Any]]


# ---------------------------------------------------------------------------
# Port
# ---------------------------------------------------------------------------

class Collection(ABC, Generic[ModelT]):
    """CRUD capability over one model type."""

    @abstractmethod
    async def find_many(
        self,
        where: Where = None,
        *,
        include: Iterable[str] = (),
        order_by: Sequence[str] = (),
    ) -> list[ModelT]:
        ...

    @abstractmethod
    async def find_unique(self, where: Mapping[str, Any], *, include: Iterable[str] = ()) -> Optional[ModelT]:
        ...

    @abstractmethod
    async def create(self, data: Mapping[str, Any], *, include: Iterable[str] = ()) -> ModelT:
        ...

    @abstractmethod
    async def update(
        self, where: Mapping[str, Any], data: Mapping[str, Any], *, include: Iterable[str] = ()
    ) -> ModelT:
        """Apply *data* to the matching record; raises ``NotFoundError``."""

    @abstractmethod
    async def delete(self, where: Mapping[str, Any]) -> None:
        """Remove the matching record; raises ``NotFoundError``."""

    @abstractmethod
    async def count(self, where: Where = None) -> int:
        ...


class RecordStore(ABC):
    articles: Collection[Article]
    categories: Collection[Category]
    tags: Collection[Tag]
    users: Collection[User]


# ---------------------------------------------------------------------------
# SQLAlchemy implementation
# ---------------------------------------------------------------------------

def _first_key(where: Mapping[str, Any]) -> tuple[str, Any]:
    key, value = next(iter(where.items()))
    return key.partition("__")[0], value


class SQLAlchemyCollection(Collection[ModelT]):
    def __init__(self, session: AsyncSession, model: type[ModelT]) -> None:
        self._session = session
        self._model = model
        self._entity = model.__name__
        self._relationships = inspect(model).relationships

    # ------------------------------------------------------------------
    # Statement helpers
    # ------------------------------------------------------------------

    def _criteria(self, where: Where) -> list:
        clauses = []
        for key, value in (where or {}).items():
            name, _, lookup = key.partition("__")
            column = getattr(self._model, name)
            if not lookup:
                clauses.append(column.is_(None) if value is None else column == value)
            elif lookup == "isnull":
                clauses.append(column.is_(None) if value else column.is_not(None))
            elif lookup == "ne":
                clauses.append(column != value)
            else:
                raise ValueError(f"Unsupported lookup {lookup!r} in {key!r}")
        return clauses

    def _load_options(self, include: Iterable[str]) -> list:
        options = []
        for name in include:
            attr = getattr(self._model, name)
            if self._relationships[name].uselist:
                options.append(selectinload(attr))
            else:
                options.append(joinedload(attr))
        return options

    def _ordering(self, order_by: Sequence[str]) -> list:
        columns = []
        for name in order_by:
            if name.startswith("-"):
                columns.append(getattr(self._model, name[1:]).desc())
            else:
                columns.append(getattr(self._model, name).asc())
        return columns

    def _select(self, where: Where, include: Iterable[str]):
        stmt = select(self._model)
        criteria = self._criteria(where)
        if criteria:
            stmt = stmt.where(*criteria)
        # Reads always reflect the database, not stale identity-map state.
        return stmt.options(*self._load_options(include)).execution_options(
            populate_existing=True
        )

    @asynccontextmanager
    async def _guard(self) -> AsyncIterator[None]:
        try:
            yield
        except IntegrityError as exc:
            await self._session.rollback()
            logger.warning("Integrity violation on %s: %s", self._entity, exc.orig)
            raise ConflictError(self._entity) from exc
        except SQLAlchemyError as exc:
            await self._session.rollback()
            raise StoreError(f"{self._entity} store operation failed") from exc

    async def _reload(self, record: ModelT, include: Iterable[str]) -> ModelT:
        # Re-select so server defaults (created_at, updated_at) and the
        # requested relationships are populated.
        async with self._guard():
            result = await self._session.execute(self._select({"id": record.id}, include))
        return result.unique().scalar_one()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def find_many(
        self,
        where: Where = None,
        *,
        include: Iterable[str] = (),
        order_by: Sequence[str] = (),
    ) -> list[ModelT]:
        stmt = self._select(where, include)
        ordering = self._ordering(order_by)
        if ordering:
            stmt = stmt.order_by(*ordering)
        async with self._guard():
            result = await self._session.execute(stmt)
        return list(result.unique().scalars().all())

    async def find_unique(self, where: Mapping[str, Any], *, include: Iterable[str] = ()) -> Optional[ModelT]:
        async with self._guard():
            result = await self._session.execute(self._select(where, include))
        return result.unique().scalar_one_or_none()

    async def count(self, where: Where = None) -> int:
        stmt = select(func.count()).select_from(self._model)
        criteria = self._criteria(where)
        if criteria:
            stmt = stmt.where(*criteria)
        async with self._guard():
            result = await self._session.execute(stmt)
        return result.scalar_one()

    # ------------------------------------------------------------------
    # Writes (flush only; the caller owns the transaction)
    # ------------------------------------------------------------------

    async def create(self, data: Mapping[str, Any], *, include: Iterable[str] = ()) -> ModelT:
        record = self._model(**data)
        async with self._guard():
            self._session.add(record)
            await self._session.flush()
        logger.debug("Created %s id=%s", self._entity, record.id)
        return await self._reload(record, include)

    async def update(
        self, where: Mapping[str, Any], data: Mapping[str, Any], *, include: Iterable[str] = ()
    ) -> ModelT:
        include = tuple(include)
        # Relationship collections must be loaded before they are replaced,
        # otherwise the old association rows are never removed.
        touched = tuple(key for key in data if key in self._relationships)
        record = await self.find_unique(where, include=set(include) | set(touched))
        if record is None:
            raise NotFoundError(self._entity, *_first_key(where))

        for key, value in data.items():
            setattr(record, key, value)
        async with self._guard():
            await self._session.flush()
        logger.debug("Updated %s id=%s fields=%s", self._entity, record.id, sorted(data))
        return await self._reload(record, include)

    async def delete(self, where: Mapping[str, Any]) -> None:
        record = await self.find_unique(where)
        if record is None:
            raise NotFoundError(self._entity, *_first_key(where))
        async with self._guard():
            await self._session.delete(record)
            await self._session.flush()
        logger.debug("Deleted %s id=%s", self._entity, record.id)


class SQLAlchemyRecordStore(RecordStore):
    """Record store bound to a single request-scoped ``AsyncSession``."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.articles = SQLAlchemyCollection(session, Article)
        self.categories = SQLAlchemyCollection(session, Category)
        self.tags = SQLAlchemyCollection(session, Tag)
        self.users = SQLAlchemyCollection(session, User)
