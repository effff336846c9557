"""Item records exchanged between the store, the use-cases and the API."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from src.store.db import STATUS_ON_SALE

MAX_IMAGES_PER_ITEM = 9


class Item(BaseModel):
    """Full item record."""

    id: str
    user_id: str
    name: str
    price: int
    description: str = ""
    image_urls: List[str] = Field(default_factory=list)
    status: str = STATUS_ON_SALE
    created_at: datetime
    updated_at: datetime


class ItemDisplayRecord(BaseModel):
    """Compact item record used in listings and recommendation results.

    Attributes:
        id: Item ID.
        name: Item name.
        price: Price in the smallest currency unit.
        image_url: Thumbnail URL, or an empty string when the item has no image.
        status: ON_SALE or SOLD.
    """

    id: str = Field(..., description="Item ID")
    name: str = Field(..., description="Item name")
    price: int = Field(..., description="Item price")
    image_url: str = Field(default="", description="Thumbnail image URL")
    status: str = Field(..., description="Sale status")


class ItemCreateRequest(BaseModel):
    """Request body for listing a new item."""

    name: str = Field(..., description="Item name")
    price: int = Field(..., description="Item price")
    description: str = Field(default="", description="Free-text description")
    image_urls: List[str] = Field(default_factory=list, description="Image URLs")

    def validation_error(self) -> Optional[str]:
        """Return the reason this request is invalid, or None if it is valid."""
        if not self.name.strip():
            return "name must not be empty"
        if self.price < 0:
            return "price must not be negative"
        if not self.image_urls:
            return "at least one image is required"
        if len(self.image_urls) > MAX_IMAGES_PER_ITEM:
            return f"at most {MAX_IMAGES_PER_ITEM} images are allowed"
        return None


class ItemUpdateRequest(BaseModel):
    """Request body for editing an item's name, price and description."""

    name: str = Field(..., description="Item name")
    price: int = Field(..., description="Item price")
    description: str = Field(default="", description="Free-text description")

    def validation_error(self) -> Optional[str]:
        """Return the reason this request is invalid, or None if it is valid."""
        if not self.name.strip():
            return "name must not be empty"
        if self.price <= 0:
            return "price must be positive"
        return None
