from typing import Any

from fastapi import APIRouter, Body, Depends

from blogcms.dependencies import get_store
from blogcms.responses import envelope_response
from blogcms.services import user_service
from blogcms.store import RecordStore

router = APIRouter(prefix="/api/v1/users", tags=["users"])


@router.get("")
async def list_users(store: RecordStore = Depends(get_store)):
    return envelope_response(await user_service.get_users(store))


@router.get("/by-email/{email}")
async def get_user_by_email(email: str, store: RecordStore = Depends(get_store)):
    return envelope_response(await user_service.get_user_by_email(store, email))


@router.get("/{user_id}")
async def get_user(user_id: int, store: RecordStore = Depends(get_store)):
    return envelope_response(await user_service.get_user(store, user_id))


@router.post("")
async def create_user(data: dict[str, Any] = Body(...), store: RecordStore = Depends(get_store)):
    return envelope_response(await user_service.create_user(store, data), success_status=201)


@router.post("/verify-credentials")
async def verify_credentials(data: dict[str, Any] = Body(...), store: RecordStore = Depends(get_store)):
    envelope = await user_service.check_credentials(
        store, str(data.get("email", "")), str(data.get("password", ""))
    )
    return envelope_response(envelope)


@router.put("/{user_id}")
async def update_user(
    user_id: int,
    data: dict[str, Any] = Body(...),
    store: RecordStore = Depends(get_store),
):
    return envelope_response(await user_service.update_user(store, user_id, data))


@router.delete("/{user_id}")
async def delete_user(user_id: int, store: RecordStore = Depends(get_store)):
    return envelope_response(await user_service.delete_user(store, user_id))
