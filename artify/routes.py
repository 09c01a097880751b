"""
HTTP routes for the Artify backend API.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import PlainTextResponse

from artify.db import FEATURED_LIMIT, RECENT_LIMIT, DbClient
from artify.dependencies import get_db_client
from artify.schemas import (
    ArtworkCreate,
    ArtworkUpdate,
    DashboardStatsResponse,
    DeletedCountResponse,
    DeleteResultResponse,
    FavoriteRequest,
    LikeRequest,
    LikeResponse,
    MessageResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_class=PlainTextResponse)
def root():
    return "Artify backend running"


# ---------- Artworks ----------


@router.post("/artworks", status_code=201)
def create_artwork(payload: ArtworkCreate, db: DbClient = Depends(get_db_client)):
    record = db.create_artwork(payload.to_fields())
    logger.info("Created artwork %s for %s", record.artwork_id, record.user_email)
    return record.as_dict()


@router.get("/artworks")
def list_artworks(
    visibility: str | None = Query(None),
    search: str | None = Query(None),
    email: str | None = Query(None),
    category: str | None = Query(None),
    db: DbClient = Depends(get_db_client),
):
    records = db.list_artworks(
        visibility=visibility,
        user_email=email,
        category=category,
        search=search,
    )
    return [record.as_dict() for record in records]


@router.get("/artworks/featured")
def featured_artworks(db: DbClient = Depends(get_db_client)):
    records = db.list_artworks(visibility="public", limit=FEATURED_LIMIT)
    return [record.as_dict() for record in records]


@router.get("/artworks/{artwork_id}")
def get_artwork(artwork_id: str, db: DbClient = Depends(get_db_client)):
    """
    Fetch one artwork along with how many artworks its owner has in total.
    """
    record = db.get_artwork(artwork_id)
    if not record:
        raise HTTPException(status_code=404, detail="Not found")
    total_artworks = db.count_artworks(record.user_email)
    return {**record.as_dict(), "totalArtworks": total_artworks}


@router.patch("/artworks/{artwork_id}")
def update_artwork(
    artwork_id: str, payload: ArtworkUpdate, db: DbClient = Depends(get_db_client)
):
    # An unknown id is answered with null rather than 404.
    record = db.update_artwork(artwork_id, payload.to_fields())
    return record.as_dict() if record else None


@router.patch("/artworks/{artwork_id}/like", response_model=LikeResponse)
def toggle_like(
    artwork_id: str, payload: LikeRequest, db: DbClient = Depends(get_db_client)
):
    result = db.toggle_like(artwork_id, payload.userEmail)
    if result is None:
        raise HTTPException(status_code=404, detail="Artwork not found")
    return LikeResponse(likes=result.likes, liked=result.liked)


@router.delete("/artworks/{artwork_id}", response_model=DeletedCountResponse)
def delete_artwork(artwork_id: str, db: DbClient = Depends(get_db_client)):
    deleted = db.delete_artwork(artwork_id)
    if deleted:
        logger.info("Deleted artwork %s", artwork_id)
    return DeletedCountResponse(deletedCount=deleted)


# ---------- Favorites ----------


@router.post("/favorites")
def add_favorite(payload: FavoriteRequest, db: DbClient = Depends(get_db_client)):
    record = db.add_favorite(payload.artworkId, payload.userEmail)
    if record is None:
        logger.info(
            "Favorite %s for %s already exists", payload.artworkId, payload.userEmail
        )
        return MessageResponse(message="Already added")
    return record.as_dict()


@router.get("/favorites")
def list_favorites(
    email: str | None = Query(None), db: DbClient = Depends(get_db_client)
):
    if not email:
        return []
    return [entry.as_dict() for entry in db.list_favorites(email)]


@router.delete("/favorites/{favorite_id}", response_model=DeleteResultResponse)
def delete_favorite(favorite_id: str, db: DbClient = Depends(get_db_client)):
    deleted = db.delete_favorite(favorite_id)
    return DeleteResultResponse(acknowledged=True, deletedCount=deleted)


# ---------- Dashboard ----------


@router.get("/dashboard/stats", response_model=DashboardStatsResponse)
def dashboard_stats(
    email: str | None = Query(None), db: DbClient = Depends(get_db_client)
):
    if not email:
        raise HTTPException(status_code=400, detail="Email required")
    return DashboardStatsResponse(
        totalArtworks=db.count_artworks(email),
        totalLikes=db.sum_likes(email),
        totalFavorites=db.count_favorites(email),
    )


@router.get("/dashboard/recent-artworks")
def recent_artworks(
    email: str | None = Query(None), db: DbClient = Depends(get_db_client)
):
    if not email:
        return []
    records = db.list_artworks(user_email=email, limit=RECENT_LIMIT)
    return [record.as_dict() for record in records]


@router.get("/dashboard/category-stats")
def category_stats(
    email: str | None = Query(None), db: DbClient = Depends(get_db_client)
):
    # Without an email the grouping would span every user's artworks.
    if not email:
        raise HTTPException(status_code=400, detail="Email required")
    return [row.as_dict() for row in db.category_counts(email)]
