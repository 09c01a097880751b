"""
Pydantic schemas for the Artify FastAPI backend.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ArtworkCreate(BaseModel):
    """Artwork fields accepted on submission; unknown fields are rejected."""

    model_config = ConfigDict(extra="forbid")

    image: Optional[str] = None
    title: Optional[str] = None
    category: Optional[str] = None
    medium: Optional[str] = None
    description: Optional[str] = None
    dimensions: Optional[str] = None
    price: Optional[float] = None
    visibility: Optional[Literal["public", "private"]] = None
    userName: Optional[str] = None
    userEmail: Optional[str] = None
    likes: Optional[int] = None
    likedBy: Optional[list[str]] = None
    artistPhoto: Optional[str] = None
    createdAt: Optional[datetime] = None

    def to_fields(self) -> dict:
        return self.model_dump(exclude_unset=True)


class ArtworkUpdate(ArtworkCreate):
    pass


class LikeRequest(BaseModel):
    userEmail: str = Field(..., min_length=1)


class LikeResponse(BaseModel):
    likes: int
    liked: bool


class DeletedCountResponse(BaseModel):
    deletedCount: int


class DeleteResultResponse(BaseModel):
    acknowledged: bool = True
    deletedCount: int


class FavoriteRequest(BaseModel):
    artworkId: str
    userEmail: str = Field(..., min_length=1)


class MessageResponse(BaseModel):
    message: str


class DashboardStatsResponse(BaseModel):
    totalArtworks: int
    totalLikes: int
    totalFavorites: int
