"""
Category service: categories are owned independently of articles; an
article only holds a reference.  A category that is still referenced
cannot be deleted.
"""
import logging
from typing import Any, Mapping

from blogcms.envelope import Envelope, failure_from, success
from blogcms.exceptions import CMSError, ConflictError, NotFoundError
from blogcms.models import Category
from blogcms.schemas import CategoryCreate
from blogcms.store import RecordStore
from blogcms.validation import validate

logger = logging.getLogger(__name__)


def _category_to_dict(category: Category) -> dict:
    return {
        "id": category.id,
        "name": category.name,
        "slug": category.slug,
        "created_at": category.created_at.isoformat() if category.created_at else None,
    }


async def _get_category(store: RecordStore, key: str, value: Any) -> Category:
    category = await store.categories.find_unique({key: value})
    if category is None:
        raise NotFoundError("Category", key, value)
    return category


async def get_categories(store: RecordStore) -> Envelope:
    try:
        categories = await store.categories.find_many(order_by=("name",))
    except CMSError as exc:
        return failure_from("categories", exc, many=True)
    return success(
        "categories",
        [_category_to_dict(c) for c in categories],
        "Categories fetched successfully",
    )


async def get_category_by_slug(store: RecordStore, slug: str) -> Envelope:
    try:
        category = await _get_category(store, "slug", slug)
    except CMSError as exc:
        return failure_from("category", exc)
    return success("category", _category_to_dict(category), "Category fetched successfully")


async def create_category(store: RecordStore, data: Mapping[str, Any]) -> Envelope:
    try:
        values: CategoryCreate = validate(CategoryCreate, data).unwrap()
        if await store.categories.count({"name": values.name}):
            raise ConflictError("Category", "name", values.name)
        if await store.categories.count({"slug": values.slug}):
            raise ConflictError("Category", "slug", values.slug)
        category = await store.categories.create({"name": values.name, "slug": values.slug})
    except CMSError as exc:
        return failure_from("category", exc)

    logger.info("Category created id=%s slug=%s", category.id, category.slug)
    return success("category", _category_to_dict(category), "Category created successfully")


async def delete_category(store: RecordStore, category_id: int) -> Envelope:
    try:
        category = await _get_category(store, "id", category_id)
        in_use = await store.articles.count({"category_id": category_id})
        if in_use:
            raise ConflictError(
                "Category",
                message=f"Category '{category.slug}' is still used by {in_use} article(s)",
            )
        payload = _category_to_dict(category)
        await store.categories.delete({"id": category_id})
    except CMSError as exc:
        return failure_from("category", exc)

    logger.info("Category deleted id=%s", category_id)
    return success("category", payload, "Category deleted successfully")
