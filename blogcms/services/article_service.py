"""
Article service: business logic for the Article aggregate.

Design notes
------------
- Publish state is the nullability of ``published_at``: NULL is a draft,
  a timestamp means published.  The only transition is draft ->
  published, made by an update that supplies a timestamp.  Clearing the
  timestamp of a published article is rejected, and so is changing its
  slug (published URLs stay stable).
- Every public function returns an ``Envelope``.  CMS errors raised by
  validation or by the record store are converted at this boundary;
  nothing escapes to the caller.
- Projections are explicit: the public list and the detail views carry
  ``content``; the index projection and the SEO metadata never do.
- Service functions flush but do not commit; the transaction boundary
  is owned by the ``get_db`` dependency in the router layer.
"""
import logging
from typing import Any, Mapping, Optional

from blogcms.envelope import Envelope, failure_from, success
from blogcms.exceptions import CMSError, ConflictError, NotFoundError, ValidationError
from blogcms.models import Article, Tag
from blogcms.schemas import ArticleCreate, ArticleUpdate
from blogcms.store import RecordStore
from blogcms.validation import validate

logger = logging.getLogger(__name__)

DETAIL_INCLUDE = ("category", "author", "tags")
INDEX_INCLUDE = ("category", "author")
NEWEST_FIRST = ("-created_at", "-id")


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _timestamp(value) -> Optional[str]:
    return value.isoformat() if value else None


def _serialize_category(category) -> dict | None:
    if category is None:
        return None
    return {"id": category.id, "name": category.name, "slug": category.slug}


def _serialize_author(author) -> dict | None:
    if author is None:
        return None
    return {"id": author.id, "name": author.name}


def _article_to_dict(article: Article) -> dict:
    """Serialise an Article ORM instance to a plain dict (full projection)."""
    return {
        "id": article.id,
        "title": article.title,
        "slug": article.slug,
        "image": article.image,
        "description": article.description,
        "content": article.content,
        "category": _serialize_category(article.category),
        "tags": sorted(t.name for t in article.tags),
        "author": _serialize_author(article.author),
        "robots": article.robots.value,
        "published_at": _timestamp(article.published_at),
        "created_at": _timestamp(article.created_at),
        "updated_at": _timestamp(article.updated_at),
    }


def _article_index_to_dict(article: Article) -> dict:
    """Reduced projection for list views; never carries the body."""
    category = article.category
    return {
        "id": article.id,
        "title": article.title,
        "slug": article.slug,
        "category": {"name": category.name, "slug": category.slug} if category else None,
        "author": {"name": article.author.name} if article.author else None,
        "published_at": _timestamp(article.published_at),
    }


def _metadata_to_dict(article: Article) -> dict:
    return {
        "title": article.title,
        "description": article.description,
        "robots": article.robots.value,
        "author": article.author.name if article.author else None,
    }


# ---------------------------------------------------------------------------
# Lookup / reference helpers (raise CMS errors)
# ---------------------------------------------------------------------------

def _published_filter(is_published: Optional[bool]) -> dict | None:
    if is_published is None:
        return None
    return {"published_at__isnull": not is_published}


async def _get_article(store: RecordStore, key: str, value: Any, include=DETAIL_INCLUDE) -> Article:
    article = await store.articles.find_unique({key: value}, include=include)
    if article is None:
        raise NotFoundError("Article", key, value)
    return article


async def _require_category(store: RecordStore, category_id: int) -> None:
    if await store.categories.count({"id": category_id}) == 0:
        message = f"Category not found with id: {category_id}"
        raise ValidationError({"category_id": [message]}, message=message)


async def _require_author(store: RecordStore, author_id: int) -> None:
    if await store.users.count({"id": author_id}) == 0:
        message = f"Author not found with id: {author_id}"
        raise ValidationError({"author_id": [message]}, message=message)


async def _ensure_slug_available(
    store: RecordStore, slug: str, exclude_id: Optional[int] = None
) -> None:
    where: dict[str, Any] = {"slug": slug}
    if exclude_id is not None:
        where["id__ne"] = exclude_id
    if await store.articles.count(where):
        raise ConflictError("Article", "slug", slug)


async def _resolve_tags(store: RecordStore, tag_names: list[str]) -> list[Tag]:
    """
    Return Tag instances for each name in *tag_names*, creating any that
    do not yet exist.
    """
    tags: list[Tag] = []
    for name in tag_names:
        tag = await store.tags.find_unique({"name": name})
        if tag is None:
            tag = await store.tags.create({"name": name})
        tags.append(tag)
    return tags


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def get_articles_public(
    store: RecordStore, is_published: Optional[bool] = True
) -> Envelope:
    """
    Return the full projection of articles, newest first.

    *is_published*: ``True`` (default) published only, ``False`` drafts
    only, ``None`` everything.
    """
    try:
        articles = await store.articles.find_many(
            _published_filter(is_published), include=DETAIL_INCLUDE, order_by=NEWEST_FIRST
        )
    except CMSError as exc:
        return failure_from("articles", exc, many=True)
    return success(
        "articles", [_article_to_dict(a) for a in articles], "Articles fetched successfully"
    )


async def get_articles(store: RecordStore, is_published: Optional[bool] = None) -> Envelope:
    """Return the index projection (no content) for list views."""
    try:
        articles = await store.articles.find_many(
            _published_filter(is_published), include=INDEX_INCLUDE, order_by=NEWEST_FIRST
        )
    except CMSError as exc:
        return failure_from("articles", exc, many=True)
    return success(
        "articles", [_article_index_to_dict(a) for a in articles], "Articles fetched successfully"
    )


async def get_article_by_id(store: RecordStore, article_id: int) -> Envelope:
    try:
        article = await _get_article(store, "id", article_id)
    except CMSError as exc:
        return failure_from("article", exc)
    return success("article", _article_to_dict(article), "Article fetched successfully")


async def get_article_by_slug(store: RecordStore, slug: str) -> Envelope:
    try:
        article = await _get_article(store, "slug", slug)
    except CMSError as exc:
        return failure_from("article", exc)
    return success("article", _article_to_dict(article), "Article fetched successfully")


async def get_article_metadata_by_slug(store: RecordStore, slug: str) -> Envelope:
    """Return only what the page head needs: title, description, robots, author."""
    try:
        article = await _get_article(store, "slug", slug, include=("author",))
    except CMSError as exc:
        return failure_from("metadata", exc)
    return success("metadata", _metadata_to_dict(article), "Article fetched successfully")


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

async def create_article(store: RecordStore, data: Mapping[str, Any]) -> Envelope:
    """
    Create an article from raw field input.

    The article starts as a draft unless ``published_at`` is supplied.
    The slug is derived from the title when not given and must be unique.
    """
    try:
        values: ArticleCreate = validate(ArticleCreate, data).unwrap()
        await _require_category(store, values.category_id)
        await _require_author(store, values.author_id)
        await _ensure_slug_available(store, values.slug)

        article = await store.articles.create(
            {
                "title": values.title,
                "slug": values.slug,
                "image": values.image,
                "description": values.description,
                "content": values.content,
                "robots": values.robots,
                "published_at": values.published_at,
                "category_id": values.category_id,
                "author_id": values.author_id,
                "tags": await _resolve_tags(store, values.tags),
            },
            include=DETAIL_INCLUDE,
        )
    except CMSError as exc:
        return failure_from("article", exc)

    logger.info("Article created id=%s slug=%s", article.id, article.slug)
    return success("article", _article_to_dict(article), "Article created successfully")


async def update_article(store: RecordStore, article_id: int, data: Mapping[str, Any]) -> Envelope:
    """
    Partially update an article.

    Only fields present in *data* are modified.  Supplying ``published_at``
    publishes a draft (or re-stamps a published article).
    """
    try:
        article = await _get_article(store, "id", article_id, include=())
        values: ArticleUpdate = validate(ArticleUpdate, data).unwrap()
        changes = values.model_dump(exclude_unset=True)

        if "published_at" in changes and changes["published_at"] is None:
            if article.is_published:
                raise ValidationError(
                    {"published_at": ["A published article cannot be reverted to draft"]},
                    message="A published article cannot be reverted to draft",
                )
            del changes["published_at"]

        if "slug" in changes:
            if changes["slug"] == article.slug:
                del changes["slug"]
            elif article.is_published:
                raise ValidationError(
                    {"slug": ["The slug of a published article cannot change"]},
                    message="The slug of a published article cannot change",
                )
            else:
                await _ensure_slug_available(store, changes["slug"], exclude_id=article.id)

        if "category_id" in changes:
            await _require_category(store, changes["category_id"])
        if changes.get("author_id") is not None:
            await _require_author(store, changes["author_id"])
        if "tags" in changes:
            changes["tags"] = await _resolve_tags(store, changes["tags"])

        article = await store.articles.update({"id": article_id}, changes, include=DETAIL_INCLUDE)
    except CMSError as exc:
        return failure_from("article", exc)

    logger.info("Article updated id=%s fields=%s", article_id, sorted(changes))
    return success("article", _article_to_dict(article), "Article updated successfully")


async def delete_article(store: RecordStore, article_id: int) -> Envelope:
    """Delete the article identified by *article_id*."""
    try:
        article = await _get_article(store, "id", article_id, include=INDEX_INCLUDE)
        payload = _article_index_to_dict(article)
        await store.articles.delete({"id": article_id})
    except CMSError as exc:
        return failure_from("article", exc)

    logger.info("Article deleted id=%s", article_id)
    return success("article", payload, "Article deleted successfully")
