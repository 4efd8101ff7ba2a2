"""Collection items router: create/clone, read, edit, delete and upvotes."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, ensure_user, get_auth_context, get_optional_auth_context
from routers.pagination import set_next_link
from routers.rate_limit import rate_limit
from services.collection_items import (
    create_item_service,
    delete_item_service,
    get_item_service,
    list_items_service,
    remove_item_upvote_service,
    update_item_service,
    upvote_item_service,
)

router = APIRouter()


class CreateItemRequest(BaseModel):
    link_url: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None


class UpdateItemRequest(BaseModel):
    description: Optional[str] = None
    # Owned by creation/enrichment; accepted and ignored.
    link_url: Optional[str] = None
    item_type: Optional[str] = None
    image_url: Optional[str] = None


class ItemResponse(BaseModel):
    id: str
    collection_id: str
    item_type: str
    link_url: str
    post_count: int
    upvote_count: int
    upvoted_by_user: bool
    root_item_id: Optional[str] = None
    image_url: Optional[str] = None
    image_pending: bool
    html_preview: Optional[str] = None
    description: Optional[str] = None
    url: str


class UpvoteResponse(BaseModel):
    item_id: str
    root_item_id: Optional[str] = None
    user_id: str
    created_at: Optional[str] = None


@router.get("/collections/items/{item_id}", response_model=ItemResponse)
async def get_collection_item(
    item_id: str,
    auth: AuthContext = Depends(get_optional_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await get_item_service(actor_id=auth.user_id, item_id=item_id, db=db)


@router.put("/collections/items/{item_id}", response_model=ItemResponse)
async def update_collection_item(
    item_id: str,
    payload: UpdateItemRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await update_item_service(
        actor_id=auth.user_id,
        item_id=item_id,
        patch=payload.model_dump(exclude_unset=True),
        db=db,
    )


@router.delete("/collections/items/{item_id}", response_model=ItemResponse)
async def delete_collection_item(
    item_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await delete_item_service(actor_id=auth.user_id, item_id=item_id, db=db)


@router.put("/collections/items/{item_id}/upvote", response_model=UpvoteResponse)
async def upvote_collection_item(
    item_id: str,
    _rate_limit: None = Depends(rate_limit("collection_item_upvote", limit=600, window_seconds=3600)),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    await ensure_user(db, auth)
    return await upvote_item_service(actor_id=auth.user_id, item_id=item_id, db=db)


@router.delete("/collections/items/{item_id}/upvote")
async def remove_collection_item_upvote(
    item_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    await remove_item_upvote_service(actor_id=auth.user_id, item_id=item_id, db=db)
    return {}


@router.get("/collections/{collection_id}/items", response_model=list[ItemResponse])
async def list_collection_items(
    collection_id: str,
    request: Request,
    response: Response,
    cursor: Optional[str] = Query(default=None),
    per_page: Optional[int] = Query(default=None, ge=1),
    auth: AuthContext = Depends(get_optional_auth_context),
    db: AsyncSession = Depends(get_db),
):
    items, next_cursor = await list_items_service(
        actor_id=auth.user_id,
        collection_id=collection_id,
        cursor=cursor,
        limit=per_page,
        db=db,
    )
    set_next_link(request, response, next_cursor)
    return items


@router.post("/collections/{collection_id}/items", response_model=ItemResponse)
async def create_collection_item(
    collection_id: str,
    payload: CreateItemRequest,
    _rate_limit: None = Depends(rate_limit("collection_item_create", limit=300, window_seconds=3600)),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    await ensure_user(db, auth)
    return await create_item_service(
        actor_id=auth.user_id,
        collection_id=collection_id,
        link_url=payload.link_url,
        description=payload.description,
        image_url=payload.image_url,
        db=db,
    )
