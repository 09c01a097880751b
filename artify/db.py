"""
Document store abstraction for MongoDB and an in-memory test implementation.
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument
from pymongo.errors import DuplicateKeyError

logger = logging.getLogger(__name__)

ARTWORKS_COLLECTION = "artworks"
FAVORITES_COLLECTION = "favorites"

FEATURED_LIMIT = 6
RECENT_LIMIT = 5
TOGGLE_ATTEMPTS = 3

# Fields with a schema default; an explicit null keeps the stored value.
_DEFAULTED_FIELDS = ("visibility", "likes", "likedBy", "createdAt")


class DbClient(Protocol):
    """Interface for document store access."""

    def create_artwork(self, fields: dict) -> "ArtworkRecord":
        ...

    def list_artworks(
        self,
        *,
        visibility: Optional[str] = None,
        user_email: Optional[str] = None,
        category: Optional[str] = None,
        search: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list["ArtworkRecord"]:
        ...

    def get_artwork(self, artwork_id: str) -> Optional["ArtworkRecord"]:
        ...

    def count_artworks(self, user_email: Optional[str]) -> int:
        ...

    def update_artwork(
        self, artwork_id: str, fields: dict
    ) -> Optional["ArtworkRecord"]:
        ...

    def toggle_like(
        self, artwork_id: str, user_email: str
    ) -> Optional["LikeResult"]:
        ...

    def delete_artwork(self, artwork_id: str) -> int:
        ...

    def sum_likes(self, user_email: str) -> int:
        ...

    def category_counts(self, user_email: str) -> list["CategoryCount"]:
        ...

    def add_favorite(
        self, artwork_id: str, user_email: str
    ) -> Optional["FavoriteRecord"]:
        ...

    def list_favorites(self, user_email: str) -> list["FavoriteEntry"]:
        ...

    def count_favorites(self, user_email: str) -> int:
        ...

    def delete_favorite(self, favorite_id: str) -> int:
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _isoformat(value: Any) -> Any:
    if isinstance(value, datetime):
        return _as_utc(value).isoformat().replace("+00:00", "Z")
    return value


def _object_id(value: str) -> ObjectId:
    # Raises bson.errors.InvalidId for malformed ids.
    return ObjectId(value)


@dataclass
class ArtworkRecord:
    artwork_id: str
    image: Optional[str] = None
    title: Optional[str] = None
    category: Optional[str] = None
    medium: Optional[str] = None
    description: Optional[str] = None
    dimensions: Optional[str] = None
    price: Optional[float] = None
    visibility: str = "public"
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    likes: int = 0
    liked_by: list[str] = field(default_factory=list)
    artist_photo: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)

    def as_dict(self) -> dict:
        return {
            "_id": self.artwork_id,
            "image": self.image,
            "title": self.title,
            "category": self.category,
            "medium": self.medium,
            "description": self.description,
            "dimensions": self.dimensions,
            "price": self.price,
            "visibility": self.visibility,
            "userName": self.user_name,
            "userEmail": self.user_email,
            "likes": self.likes,
            "likedBy": list(self.liked_by),
            "artistPhoto": self.artist_photo,
            "createdAt": _isoformat(self.created_at),
        }


@dataclass
class FavoriteRecord:
    favorite_id: str
    artwork_id: str
    user_email: str
    created_at: datetime = field(default_factory=_utcnow)

    def as_dict(self) -> dict:
        return {
            "_id": self.favorite_id,
            "artworkId": self.artwork_id,
            "userEmail": self.user_email,
            "createdAt": _isoformat(self.created_at),
        }


@dataclass
class FavoriteEntry:
    """A favorite joined with the artwork it points at."""

    favorite_id: str
    artwork: ArtworkRecord

    def as_dict(self) -> dict:
        return {"_id": self.favorite_id, "artwork": self.artwork.as_dict()}


@dataclass
class LikeResult:
    likes: int
    liked: bool


@dataclass
class CategoryCount:
    category: Optional[str]
    count: int

    def as_dict(self) -> dict:
        return {"_id": self.category, "count": self.count}


def build_artwork_document(fields: dict) -> dict:
    """
    Apply defaults to caller-supplied artwork fields.

    Supplied values win. ``likedBy`` is collapsed to unique emails and, when
    ``likes`` is not supplied, the counter is derived from it.
    """
    doc: Dict[str, Any] = {
        "visibility": "public",
        "likes": 0,
        "likedBy": [],
        "createdAt": _utcnow(),
    }
    doc.update(normalize_artwork_fields(fields))
    return doc


def normalize_artwork_fields(fields: dict) -> dict:
    normalized = {
        key: value
        for key, value in fields.items()
        if value is not None or key not in _DEFAULTED_FIELDS
    }
    if normalized.get("likedBy") is not None:
        normalized["likedBy"] = list(dict.fromkeys(normalized["likedBy"]))
        normalized.setdefault("likes", len(normalized["likedBy"]))
    if isinstance(normalized.get("createdAt"), datetime):
        normalized["createdAt"] = _as_utc(normalized["createdAt"])
    return normalized


def build_artwork_filter(
    *,
    visibility: Optional[str] = None,
    user_email: Optional[str] = None,
    category: Optional[str] = None,
    search: Optional[str] = None,
) -> dict:
    query: Dict[str, Any] = {}
    if visibility:
        query["visibility"] = visibility
    if user_email:
        query["userEmail"] = user_email
    if category:
        query["category"] = category
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        query["$or"] = [
            {"title": pattern},
            {"userName": pattern},
            {"category": pattern},
        ]
    return query


def _artwork_from_document(doc: dict) -> ArtworkRecord:
    return ArtworkRecord(
        artwork_id=str(doc["_id"]),
        image=doc.get("image"),
        title=doc.get("title"),
        category=doc.get("category"),
        medium=doc.get("medium"),
        description=doc.get("description"),
        dimensions=doc.get("dimensions"),
        price=doc.get("price"),
        visibility=doc.get("visibility", "public"),
        user_name=doc.get("userName"),
        user_email=doc.get("userEmail"),
        likes=doc.get("likes", 0),
        liked_by=list(doc.get("likedBy") or []),
        artist_photo=doc.get("artistPhoto"),
        created_at=doc.get("createdAt") or _utcnow(),
    )


def _favorite_from_document(doc: dict) -> FavoriteRecord:
    return FavoriteRecord(
        favorite_id=str(doc["_id"]),
        artwork_id=str(doc["artworkId"]),
        user_email=doc.get("userEmail"),
        created_at=doc.get("createdAt") or _utcnow(),
    )


def _newest_first(doc: dict) -> tuple:
    return (_as_utc(doc["createdAt"]), doc["_id"])


class InMemoryDbClient:
    """Simple in-memory document store for development and tests."""

    def __init__(self):
        self.artworks: Dict[ObjectId, dict] = {}
        self.favorites: Dict[ObjectId, dict] = {}
        self._lock = threading.Lock()

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self.artworks.clear()
            self.favorites.clear()

    def create_artwork(self, fields: dict) -> ArtworkRecord:
        doc = build_artwork_document(fields)
        doc["_id"] = ObjectId()
        with self._lock:
            self.artworks[doc["_id"]] = doc
        return _artwork_from_document(doc)

    def list_artworks(
        self,
        *,
        visibility: Optional[str] = None,
        user_email: Optional[str] = None,
        category: Optional[str] = None,
        search: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[ArtworkRecord]:
        pattern = re.compile(re.escape(search), re.IGNORECASE) if search else None

        def matches(doc: dict) -> bool:
            if visibility and doc.get("visibility") != visibility:
                return False
            if user_email and doc.get("userEmail") != user_email:
                return False
            if category and doc.get("category") != category:
                return False
            if pattern:
                return any(
                    isinstance(doc.get(key), str) and pattern.search(doc[key])
                    for key in ("title", "userName", "category")
                )
            return True

        with self._lock:
            docs = [doc for doc in self.artworks.values() if matches(doc)]
        docs.sort(key=_newest_first, reverse=True)
        if limit:
            docs = docs[:limit]
        return [_artwork_from_document(doc) for doc in docs]

    def get_artwork(self, artwork_id: str) -> Optional[ArtworkRecord]:
        oid = _object_id(artwork_id)
        with self._lock:
            doc = self.artworks.get(oid)
            if not doc:
                return None
            return _artwork_from_document(doc)

    def count_artworks(self, user_email: Optional[str]) -> int:
        with self._lock:
            return sum(
                1
                for doc in self.artworks.values()
                if doc.get("userEmail") == user_email
            )

    def update_artwork(self, artwork_id: str, fields: dict) -> Optional[ArtworkRecord]:
        oid = _object_id(artwork_id)
        with self._lock:
            doc = self.artworks.get(oid)
            if not doc:
                return None
            doc.update(normalize_artwork_fields(fields))
            return _artwork_from_document(doc)

    def toggle_like(self, artwork_id: str, user_email: str) -> Optional[LikeResult]:
        oid = _object_id(artwork_id)
        with self._lock:
            doc = self.artworks.get(oid)
            if not doc:
                return None
            liked_by = doc.setdefault("likedBy", [])
            if user_email in liked_by:
                liked_by.remove(user_email)
                doc["likes"] = doc.get("likes", 0) - 1
                liked = False
            else:
                liked_by.append(user_email)
                doc["likes"] = doc.get("likes", 0) + 1
                liked = True
            return LikeResult(likes=doc["likes"], liked=liked)

    def delete_artwork(self, artwork_id: str) -> int:
        oid = _object_id(artwork_id)
        with self._lock:
            return 1 if self.artworks.pop(oid, None) is not None else 0

    def sum_likes(self, user_email: str) -> int:
        with self._lock:
            return sum(
                doc.get("likes", 0)
                for doc in self.artworks.values()
                if doc.get("userEmail") == user_email
            )

    def category_counts(self, user_email: str) -> list[CategoryCount]:
        counts: Dict[Optional[str], int] = {}
        with self._lock:
            for doc in self.artworks.values():
                if doc.get("userEmail") != user_email:
                    continue
                category = doc.get("category")
                counts[category] = counts.get(category, 0) + 1
        ordered = sorted(
            counts.items(), key=lambda item: (-item[1], item[0] is not None, item[0] or "")
        )
        return [CategoryCount(category=cat, count=count) for cat, count in ordered]

    def add_favorite(self, artwork_id: str, user_email: str) -> Optional[FavoriteRecord]:
        oid = _object_id(artwork_id)
        with self._lock:
            for doc in self.favorites.values():
                if doc["artworkId"] == oid and doc["userEmail"] == user_email:
                    return None
            doc = {
                "_id": ObjectId(),
                "artworkId": oid,
                "userEmail": user_email,
                "createdAt": _utcnow(),
            }
            self.favorites[doc["_id"]] = doc
        return _favorite_from_document(doc)

    def list_favorites(self, user_email: str) -> list[FavoriteEntry]:
        entries: list[FavoriteEntry] = []
        with self._lock:
            for doc in self.favorites.values():
                if doc["userEmail"] != user_email:
                    continue
                artwork = self.artworks.get(doc["artworkId"])
                if artwork is None:
                    continue
                entries.append(
                    FavoriteEntry(
                        favorite_id=str(doc["_id"]),
                        artwork=_artwork_from_document(artwork),
                    )
                )
        return entries

    def count_favorites(self, user_email: str) -> int:
        with self._lock:
            return sum(
                1 for doc in self.favorites.values() if doc["userEmail"] == user_email
            )

    def delete_favorite(self, favorite_id: str) -> int:
        oid = _object_id(favorite_id)
        with self._lock:
            return 1 if self.favorites.pop(oid, None) is not None else 0


class MongoDbClient:
    """
    pymongo-backed implementation. Accepts a MongoDB connection string, or an
    already constructed client (e.g., a mock in tests).
    """

    def __init__(
        self,
        mongo_uri: Optional[str],
        db_name: str = "artifyDB",
        *,
        client: Optional[MongoClient] = None,
    ):
        if client is None:
            if not mongo_uri:
                raise ValueError("MONGO_URI is required for MongoDbClient")
            client = MongoClient(mongo_uri, tz_aware=True)
        self.client = client
        self.db = client[db_name]
        self.artworks = self.db[ARTWORKS_COLLECTION]
        self.favorites = self.db[FAVORITES_COLLECTION]
        self._ensure_indexes()
        logger.info("MongoDB client ready for database %s", db_name)

    def _ensure_indexes(self) -> None:
        self.artworks.create_index([("userEmail", ASCENDING)])
        self.artworks.create_index([("createdAt", DESCENDING)])
        self.favorites.create_index(
            [("artworkId", ASCENDING), ("userEmail", ASCENDING)], unique=True
        )

    def create_artwork(self, fields: dict) -> ArtworkRecord:
        doc = build_artwork_document(fields)
        result = self.artworks.insert_one(doc)
        doc["_id"] = result.inserted_id
        return _artwork_from_document(doc)

    def list_artworks(
        self,
        *,
        visibility: Optional[str] = None,
        user_email: Optional[str] = None,
        category: Optional[str] = None,
        search: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[ArtworkRecord]:
        query = build_artwork_filter(
            visibility=visibility,
            user_email=user_email,
            category=category,
            search=search,
        )
        cursor = self.artworks.find(query).sort(
            [("createdAt", DESCENDING), ("_id", DESCENDING)]
        )
        if limit:
            cursor = cursor.limit(limit)
        return [_artwork_from_document(doc) for doc in cursor]

    def get_artwork(self, artwork_id: str) -> Optional[ArtworkRecord]:
        doc = self.artworks.find_one({"_id": _object_id(artwork_id)})
        if not doc:
            return None
        return _artwork_from_document(doc)

    def count_artworks(self, user_email: Optional[str]) -> int:
        return self.artworks.count_documents({"userEmail": user_email})

    def update_artwork(self, artwork_id: str, fields: dict) -> Optional[ArtworkRecord]:
        oid = _object_id(artwork_id)
        updates = normalize_artwork_fields(fields)
        if not updates:
            doc = self.artworks.find_one({"_id": oid})
        else:
            doc = self.artworks.find_one_and_update(
                {"_id": oid},
                {"$set": updates},
                return_document=ReturnDocument.AFTER,
            )
        if not doc:
            return None
        return _artwork_from_document(doc)

    def toggle_like(self, artwork_id: str, user_email: str) -> Optional[LikeResult]:
        oid = _object_id(artwork_id)
        for _ in range(TOGGLE_ATTEMPTS):
            # Membership is part of each filter so the set and the counter
            # move together in a single write.
            doc = self.artworks.find_one_and_update(
                {"_id": oid, "likedBy": {"$ne": user_email}},
                {"$addToSet": {"likedBy": user_email}, "$inc": {"likes": 1}},
                projection={"likes": 1},
                return_document=ReturnDocument.AFTER,
            )
            if doc:
                return LikeResult(likes=doc["likes"], liked=True)
            doc = self.artworks.find_one_and_update(
                {"_id": oid, "likedBy": user_email},
                {"$pull": {"likedBy": user_email}, "$inc": {"likes": -1}},
                projection={"likes": 1},
                return_document=ReturnDocument.AFTER,
            )
            if doc:
                return LikeResult(likes=doc["likes"], liked=False)
            # Both guards missed: either the artwork is gone or a concurrent
            # toggle flipped membership between the two writes.
            if self.artworks.find_one({"_id": oid}, {"_id": 1}) is None:
                return None
            logger.info("Retrying like toggle on %s after concurrent change", oid)
        raise RuntimeError(f"Like toggle on {oid} kept losing concurrent updates")

    def delete_artwork(self, artwork_id: str) -> int:
        result = self.artworks.delete_one({"_id": _object_id(artwork_id)})
        return result.deleted_count

    def sum_likes(self, user_email: str) -> int:
        rows = list(
            self.artworks.aggregate(
                [
                    {"$match": {"userEmail": user_email}},
                    {"$group": {"_id": None, "totalLikes": {"$sum": "$likes"}}},
                ]
            )
        )
        if not rows:
            return 0
        return rows[0].get("totalLikes") or 0

    def category_counts(self, user_email: str) -> list[CategoryCount]:
        rows = self.artworks.aggregate(
            [
                {"$match": {"userEmail": user_email}},
                {"$group": {"_id": "$category", "count": {"$sum": 1}}},
                {"$sort": {"count": -1, "_id": 1}},
            ]
        )
        return [CategoryCount(category=row["_id"], count=row["count"]) for row in rows]

    def add_favorite(self, artwork_id: str, user_email: str) -> Optional[FavoriteRecord]:
        oid = _object_id(artwork_id)
        now = _utcnow()
        try:
            result = self.favorites.update_one(
                {"artworkId": oid, "userEmail": user_email},
                {"$setOnInsert": {"createdAt": now}},
                upsert=True,
            )
        except DuplicateKeyError:
            # Lost an upsert race against the unique (artworkId, userEmail) index.
            return None
        if result.upserted_id is None:
            return None
        return FavoriteRecord(
            favorite_id=str(result.upserted_id),
            artwork_id=str(oid),
            user_email=user_email,
            created_at=now,
        )

    def list_favorites(self, user_email: str) -> list[FavoriteEntry]:
        favorites = list(
            self.favorites.find({"userEmail": user_email}).sort("_id", ASCENDING)
        )
        if not favorites:
            return []
        artwork_ids = list({doc["artworkId"] for doc in favorites})
        artworks = {
            doc["_id"]: doc
            for doc in self.artworks.find({"_id": {"$in": artwork_ids}})
        }
        entries: list[FavoriteEntry] = []
        for doc in favorites:
            artwork = artworks.get(doc["artworkId"])
            if artwork is None:
                continue
            entries.append(
                FavoriteEntry(
                    favorite_id=str(doc["_id"]),
                    artwork=_artwork_from_document(artwork),
                )
            )
        return entries

    def count_favorites(self, user_email: str) -> int:
        return self.favorites.count_documents({"userEmail": user_email})

    def delete_favorite(self, favorite_id: str) -> int:
        result = self.favorites.delete_one({"_id": _object_id(favorite_id)})
        return result.deleted_count
