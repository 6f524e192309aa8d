from typing import Any

from fastapi import APIRouter, Body, Depends

from blogcms.dependencies import get_store
from blogcms.responses import envelope_response
from blogcms.services import category_service
from blogcms.store import RecordStore

router = APIRouter(prefix="/api/v1/categories", tags=["categories"])


@router.get("")
async def list_categories(store: RecordStore = Depends(get_store)):
    return envelope_response(await category_service.get_categories(store))


@router.get("/{slug}")
async def get_category(slug: str, store: RecordStore = Depends(get_store)):
    return envelope_response(await category_service.get_category_by_slug(store, slug))


@router.post("")
async def create_category(data: dict[str, Any] = Body(...), store: RecordStore = Depends(get_store)):
    return envelope_response(await category_service.create_category(store, data), success_status=201)


@router.delete("/{category_id}")
async def delete_category(category_id: int, store: RecordStore = Depends(get_store)):
    return envelope_response(await category_service.delete_category(store, category_id))
