"""
Admin validation queue: review discovered candidates.

  GET   /admin/validation            -- items + per-status counts
  GET   /admin/validation/{item_id}  -- one item
  PATCH /admin/validation/{item_id}  -- approve / reject a pending item
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from services.discovery.pipeline.validation_queue import (
    DEFAULT_LIST_LIMIT,
    InvalidTransitionError,
    QueueAction,
    QueueItemNotFoundError,
    QueueStatus,
    count_by_status,
    get_queue_item,
    list_queue_items,
    transition_queue_item,
)
from services.discovery.routers._admin_deps import get_db, get_reviewer

router = APIRouter(prefix="/admin/validation", tags=["admin-validation"])


class ReviewAction(BaseModel):
    action: QueueAction


@router.get("")
async def list_items(
    status: Optional[QueueStatus] = Query(None),
    city: Optional[str] = Query(None),
    limit: int = Query(DEFAULT_LIST_LIMIT, ge=1, le=DEFAULT_LIST_LIMIT),
    db: AsyncSession = Depends(get_db),
):
    items = await list_queue_items(db, status=status, city=city, limit=limit)
    counts = await count_by_status(db, city=city)
    return {"items": items, "counts": counts}


@router.get("/{item_id}")
async def get_item(item_id: str, db: AsyncSession = Depends(get_db)):
    try:
        return await get_queue_item(db, item_id)
    except QueueItemNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@router.patch("/{item_id}")
async def review_item(
    item_id: str,
    body: ReviewAction,
    db: AsyncSession = Depends(get_db),
    reviewer: str = Depends(get_reviewer),
):
    try:
        return await transition_queue_item(db, item_id, body.action, reviewed_by=reviewer)
    except QueueItemNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
