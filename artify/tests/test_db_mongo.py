import unittest
from datetime import datetime, timezone
from unittest.mock import MagicMock

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from artify.db import LikeResult, MongoDbClient, build_artwork_filter


class MongoDbClientTests(unittest.TestCase):
    """
    Exercises the pymongo client against mocked collections so the query
    shapes sent to MongoDB can be checked without a server.
    """

    def setUp(self):
        self.artworks = MagicMock(name="artworks")
        self.favorites = MagicMock(name="favorites")
        collections = {"artworks": self.artworks, "favorites": self.favorites}
        database = MagicMock(name="database")
        database.__getitem__.side_effect = collections.__getitem__
        mongo = MagicMock(name="mongo")
        mongo.__getitem__.return_value = database
        self.db = MongoDbClient(None, "artifyDB", client=mongo)
        mongo.__getitem__.assert_called_with("artifyDB")

    def _artwork_doc(self, **fields):
        doc = {
            "_id": ObjectId(),
            "title": "Sunset",
            "visibility": "public",
            "likes": 0,
            "likedBy": [],
            "createdAt": datetime(2024, 1, 1, tzinfo=timezone.utc),
        }
        doc.update(fields)
        return doc

    def test_requires_uri_without_client(self):
        with self.assertRaises(ValueError):
            MongoDbClient(None)

    def test_creates_unique_favorite_index(self):
        self.favorites.create_index.assert_called_with(
            [("artworkId", 1), ("userEmail", 1)], unique=True
        )

    def test_create_artwork_inserts_defaults(self):
        oid = ObjectId()
        self.artworks.insert_one.return_value.inserted_id = oid

        record = self.db.create_artwork({"title": "Sunset", "price": 10.0})

        inserted = self.artworks.insert_one.call_args[0][0]
        self.assertEqual(inserted["visibility"], "public")
        self.assertEqual(inserted["likes"], 0)
        self.assertEqual(inserted["likedBy"], [])
        self.assertEqual(record.artwork_id, str(oid))
        self.assertEqual(record.price, 10.0)

    def test_artwork_filter_escapes_search(self):
        query = build_artwork_filter(visibility="public", search="a.b")
        pattern = {"$regex": r"a\.b", "$options": "i"}
        self.assertEqual(
            query,
            {
                "visibility": "public",
                "$or": [
                    {"title": pattern},
                    {"userName": pattern},
                    {"category": pattern},
                ],
            },
        )

    def test_artwork_filter_ignores_empty_values(self):
        self.assertEqual(build_artwork_filter(visibility="", search=""), {})

    def test_list_artworks_sorts_and_limits(self):
        doc = self._artwork_doc()
        cursor = self.artworks.find.return_value.sort.return_value
        cursor.limit.return_value = [doc]

        records = self.db.list_artworks(visibility="public", limit=6)

        self.artworks.find.assert_called_once_with({"visibility": "public"})
        self.artworks.find.return_value.sort.assert_called_once_with(
            [("createdAt", -1), ("_id", -1)]
        )
        cursor.limit.assert_called_once_with(6)
        self.assertEqual([r.artwork_id for r in records], [str(doc["_id"])])

    def test_update_uses_set_and_returns_after(self):
        oid = ObjectId()
        self.artworks.find_one_and_update.return_value = self._artwork_doc(
            _id=oid, title="Final"
        )

        record = self.db.update_artwork(str(oid), {"title": "Final"})

        self.artworks.find_one_and_update.assert_called_once_with(
            {"_id": oid},
            {"$set": {"title": "Final"}},
            return_document=ReturnDocument.AFTER,
        )
        self.assertEqual(record.title, "Final")

    def test_update_with_only_null_defaults_reads_current(self):
        oid = ObjectId()
        self.artworks.find_one.return_value = self._artwork_doc(_id=oid)

        record = self.db.update_artwork(str(oid), {"likes": None, "visibility": None})

        self.artworks.find_one.assert_called_once_with({"_id": oid})
        self.artworks.find_one_and_update.assert_not_called()
        self.assertEqual(record.artwork_id, str(oid))

    def test_update_unknown_id(self):
        self.artworks.find_one_and_update.return_value = None
        self.assertIsNone(self.db.update_artwork(str(ObjectId()), {"title": "x"}))

    def test_toggle_like_adds_when_absent(self):
        oid = ObjectId()
        self.artworks.find_one_and_update.side_effect = [{"_id": oid, "likes": 1}]

        result = self.db.toggle_like(str(oid), "a@x.com")

        self.assertEqual(result, LikeResult(likes=1, liked=True))
        args, kwargs = self.artworks.find_one_and_update.call_args
        self.assertEqual(args[0], {"_id": oid, "likedBy": {"$ne": "a@x.com"}})
        self.assertEqual(
            args[1], {"$addToSet": {"likedBy": "a@x.com"}, "$inc": {"likes": 1}}
        )

    def test_toggle_like_removes_when_present(self):
        oid = ObjectId()
        self.artworks.find_one_and_update.side_effect = [None, {"_id": oid, "likes": 0}]

        result = self.db.toggle_like(str(oid), "a@x.com")

        self.assertEqual(result, LikeResult(likes=0, liked=False))
        args, _ = self.artworks.find_one_and_update.call_args
        self.assertEqual(args[0], {"_id": oid, "likedBy": "a@x.com"})
        self.assertEqual(
            args[1], {"$pull": {"likedBy": "a@x.com"}, "$inc": {"likes": -1}}
        )

    def test_toggle_like_missing_artwork(self):
        oid = ObjectId()
        self.artworks.find_one_and_update.side_effect = [None, None]
        self.artworks.find_one.return_value = None

        self.assertIsNone(self.db.toggle_like(str(oid), "a@x.com"))
        self.artworks.find_one.assert_called_once_with({"_id": oid}, {"_id": 1})

    def test_toggle_like_retries_after_concurrent_unlike(self):
        oid = ObjectId()
        # First pass: email present for the like guard, then pulled by another
        # request before the unlike guard runs.
        self.artworks.find_one_and_update.side_effect = [
            None,
            None,
            {"_id": oid, "likes": 1},
        ]
        self.artworks.find_one.return_value = {"_id": oid}

        result = self.db.toggle_like(str(oid), "a@x.com")

        self.assertEqual(result, LikeResult(likes=1, liked=True))
        self.assertEqual(self.artworks.find_one_and_update.call_count, 3)

    def test_toggle_like_gives_up_after_repeated_conflicts(self):
        oid = ObjectId()
        self.artworks.find_one_and_update.return_value = None
        self.artworks.find_one.return_value = {"_id": oid}

        with self.assertRaises(RuntimeError):
            self.db.toggle_like(str(oid), "a@x.com")

    def test_delete_artwork_returns_count(self):
        self.artworks.delete_one.return_value.deleted_count = 0
        self.assertEqual(self.db.delete_artwork(str(ObjectId())), 0)

    def test_sum_likes(self):
        self.artworks.aggregate.return_value = []
        self.assertEqual(self.db.sum_likes("a@x.com"), 0)

        self.artworks.aggregate.return_value = [{"_id": None, "totalLikes": 7}]
        self.assertEqual(self.db.sum_likes("a@x.com"), 7)
        pipeline = self.artworks.aggregate.call_args[0][0]
        self.assertEqual(pipeline[0], {"$match": {"userEmail": "a@x.com"}})

    def test_category_counts(self):
        self.artworks.aggregate.return_value = [
            {"_id": "Oil", "count": 2},
            {"_id": "Ink", "count": 1},
        ]
        rows = [row.as_dict() for row in self.db.category_counts("a@x.com")]
        self.assertEqual(rows, [{"_id": "Oil", "count": 2}, {"_id": "Ink", "count": 1}])

    def test_add_favorite_upserts(self):
        artwork_id = ObjectId()
        favorite_id = ObjectId()
        self.favorites.update_one.return_value.upserted_id = favorite_id

        record = self.db.add_favorite(str(artwork_id), "fan@x.com")

        self.assertEqual(record.favorite_id, str(favorite_id))
        self.assertEqual(record.artwork_id, str(artwork_id))
        args, kwargs = self.favorites.update_one.call_args
        self.assertEqual(args[0], {"artworkId": artwork_id, "userEmail": "fan@x.com"})
        self.assertIn("$setOnInsert", args[1])
        self.assertTrue(kwargs["upsert"])

    def test_add_favorite_existing(self):
        self.favorites.update_one.return_value.upserted_id = None
        self.assertIsNone(self.db.add_favorite(str(ObjectId()), "fan@x.com"))

    def test_add_favorite_lost_race(self):
        self.favorites.update_one.side_effect = DuplicateKeyError("duplicate")
        self.assertIsNone(self.db.add_favorite(str(ObjectId()), "fan@x.com"))

    def test_list_favorites_drops_orphans(self):
        kept = self._artwork_doc(title="Kept")
        kept_fav = {"_id": ObjectId(), "artworkId": kept["_id"], "userEmail": "f"}
        orphan_fav = {"_id": ObjectId(), "artworkId": ObjectId(), "userEmail": "f"}
        self.favorites.find.return_value.sort.return_value = [kept_fav, orphan_fav]
        self.artworks.find.return_value = [kept]

        entries = self.db.list_favorites("f")

        self.assertEqual(
            [entry.as_dict()["_id"] for entry in entries], [str(kept_fav["_id"])]
        )
        self.assertEqual(entries[0].artwork.title, "Kept")
        lookup = self.artworks.find.call_args[0][0]
        self.assertEqual(
            sorted(lookup["_id"]["$in"]),
            sorted([kept["_id"], orphan_fav["artworkId"]]),
        )

    def test_list_favorites_empty(self):
        self.favorites.find.return_value.sort.return_value = []
        self.assertEqual(self.db.list_favorites("f"), [])
        self.artworks.find.assert_not_called()

    def test_count_favorites(self):
        self.favorites.count_documents.return_value = 3
        self.assertEqual(self.db.count_favorites("f"), 3)
        self.favorites.count_documents.assert_called_once_with({"userEmail": "f"})


if __name__ == "__main__":
    unittest.main()
