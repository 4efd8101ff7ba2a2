"""User collections router."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from models.collection import Collection
from routers.auth_scope import AuthContext, ensure_user, get_auth_context, get_optional_auth_context
from routers.pagination import set_next_link
from routers.rate_limit import rate_limit
from services.collections import (
    create_collection,
    delete_collection,
    get_collection,
    list_collections,
    serialize_collection,
    update_collection,
)

router = APIRouter()


class CreateCollectionRequest(BaseModel):
    name: str = ""
    visibility: str = "private"


class UpdateCollectionRequest(BaseModel):
    name: Optional[str] = None
    # Accepted only so the service can reject it explicitly.
    visibility: Optional[str] = None


class CollectionResponse(BaseModel):
    id: str
    name: str
    visibility: str


def _resolve_owner_id(user_id: str, auth: AuthContext) -> Optional[str]:
    if user_id == "self":
        return auth.user_id
    return user_id


def _ensure_path_owner(user_id: str, auth: AuthContext, collection: Collection) -> None:
    if _resolve_owner_id(user_id, auth) != collection.user_id:
        raise HTTPException(status_code=404, detail="Collection not found")


@router.get("/users/{user_id}/collections", response_model=list[CollectionResponse])
async def list_user_collections(
    user_id: str,
    request: Request,
    response: Response,
    cursor: Optional[str] = Query(default=None),
    per_page: Optional[int] = Query(default=None, ge=1),
    auth: AuthContext = Depends(get_optional_auth_context),
    db: AsyncSession = Depends(get_db),
):
    page = await list_collections(
        actor_id=auth.user_id,
        owner_id=_resolve_owner_id(user_id, auth),
        cursor=cursor,
        limit=per_page,
        db=db,
    )
    set_next_link(request, response, page.next_cursor)
    return [serialize_collection(row) for row in page.rows]


@router.post("/users/{user_id}/collections", response_model=CollectionResponse)
async def create_user_collection(
    user_id: str,
    payload: CreateCollectionRequest,
    _rate_limit: None = Depends(rate_limit("collections_create", limit=120, window_seconds=3600)),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    if _resolve_owner_id(user_id, auth) != auth.user_id:
        raise HTTPException(status_code=401, detail="user not authorized to perform that action")
    await ensure_user(db, auth)
    collection = await create_collection(
        owner_id=auth.user_id,
        name=payload.name,
        visibility=payload.visibility,
        db=db,
    )
    return serialize_collection(collection)


@router.get("/users/{user_id}/collections/{collection_id}", response_model=CollectionResponse)
async def get_user_collection(
    user_id: str,
    collection_id: str,
    auth: AuthContext = Depends(get_optional_auth_context),
    db: AsyncSession = Depends(get_db),
):
    collection = await get_collection(actor_id=auth.user_id, collection_id=collection_id, db=db)
    _ensure_path_owner(user_id, auth, collection)
    return serialize_collection(collection)


@router.put("/users/{user_id}/collections/{collection_id}", response_model=CollectionResponse)
async def update_user_collection(
    user_id: str,
    collection_id: str,
    payload: UpdateCollectionRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    _ensure_path_owner(user_id, auth, await get_collection(actor_id=auth.user_id, collection_id=collection_id, db=db))
    collection = await update_collection(
        actor_id=auth.user_id,
        collection_id=collection_id,
        patch=payload.model_dump(exclude_unset=True),
        db=db,
    )
    return serialize_collection(collection)


@router.delete("/users/{user_id}/collections/{collection_id}", response_model=CollectionResponse)
async def delete_user_collection(
    user_id: str,
    collection_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    _ensure_path_owner(user_id, auth, await get_collection(actor_id=auth.user_id, collection_id=collection_id, db=db))
    collection = await delete_collection(actor_id=auth.user_id, collection_id=collection_id, db=db)
    return serialize_collection(collection)
