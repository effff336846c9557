"""Item write endpoints.

Listing, editing, buying and liking items. Authentication happens upstream;
the caller's identity arrives in the X-User-ID header.
"""

import logging
from typing import Dict

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from src.api.dependencies import get_current_user_id, get_item_write_service
from src.marketplace.items import ItemWriteService
from src.store.models import ItemCreateRequest, ItemUpdateRequest

# Configure module logger
logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/items",
    tags=["items"],
)


class ItemCreatedResponse(BaseModel):
    id: str = Field(..., description="ID of the new item")


class LikeResponse(BaseModel):
    item_id: str
    liked: bool = Field(..., description="Whether the item is liked after the call")


@router.post("", response_model=ItemCreatedResponse, status_code=status.HTTP_201_CREATED)
def register_item(
    request: ItemCreateRequest,
    user_id: str = Depends(get_current_user_id),
    service: ItemWriteService = Depends(get_item_write_service),
) -> ItemCreatedResponse:
    """List a new item for sale."""
    item_id = service.register_item(user_id, request)
    return ItemCreatedResponse(id=item_id)


@router.put("/{item_id}")
def update_item(
    item_id: str,
    request: ItemUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    service: ItemWriteService = Depends(get_item_write_service),
) -> Dict[str, str]:
    """Edit an item the caller is selling."""
    service.update_item(item_id, user_id, request)
    return {"status": "updated"}


@router.post("/{item_id}/purchase")
def purchase_item(
    item_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ItemWriteService = Depends(get_item_write_service),
) -> Dict[str, str]:
    """Buy an item."""
    service.purchase_item(item_id, user_id)
    return {"status": "purchased"}


@router.post("/{item_id}/like", response_model=LikeResponse)
def toggle_like(
    item_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ItemWriteService = Depends(get_item_write_service),
) -> LikeResponse:
    """Like an item, or remove an existing like."""
    liked = service.toggle_like(user_id, item_id)
    return LikeResponse(item_id=item_id, liked=liked)
