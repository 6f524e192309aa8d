from typing import Any

from fastapi import APIRouter, Body, Depends

from blogcms.dependencies import IndexFilterParams, PublishFilterParams, get_store
from blogcms.responses import envelope_response
from blogcms.services import article_service
from blogcms.store import RecordStore

router = APIRouter(prefix="/api/v1/articles", tags=["articles"])


@router.get("")
async def list_articles_public(
    filters: PublishFilterParams = Depends(),
    store: RecordStore = Depends(get_store),
):
    return envelope_response(await article_service.get_articles_public(store, filters.is_published))


@router.get("/index")
async def list_articles_index(
    filters: IndexFilterParams = Depends(),
    store: RecordStore = Depends(get_store),
):
    return envelope_response(await article_service.get_articles(store, filters.is_published))


@router.get("/slug/{slug}")
async def get_article_by_slug(slug: str, store: RecordStore = Depends(get_store)):
    return envelope_response(await article_service.get_article_by_slug(store, slug))


@router.get("/slug/{slug}/metadata")
async def get_article_metadata(slug: str, store: RecordStore = Depends(get_store)):
    return envelope_response(await article_service.get_article_metadata_by_slug(store, slug))


@router.get("/{article_id}")
async def get_article(article_id: int, store: RecordStore = Depends(get_store)):
    return envelope_response(await article_service.get_article_by_id(store, article_id))


@router.post("")
async def create_article(data: dict[str, Any] = Body(...), store: RecordStore = Depends(get_store)):
    return envelope_response(await article_service.create_article(store, data), success_status=201)


@router.put("/{article_id}")
async def update_article(
    article_id: int,
    data: dict[str, Any] = Body(...),
    store: RecordStore = Depends(get_store),
):
    return envelope_response(await article_service.update_article(store, article_id, data))


@router.delete("/{article_id}")
async def delete_article(article_id: int, store: RecordStore = Depends(get_store)):
    return envelope_response(await article_service.delete_article(store, article_id))
