import unittest

from confdesk.db import InMemoryRecordStore, SqlRecordStore
from confdesk.errors import UpstreamFailure


class RecordStoreContract:
    """Behaviour both record store implementations share."""

    store = None

    def paper(self, **overrides):
        row = {
            "user_id": "u1",
            "paper_title": "Title",
            "file_name": "paper.pdf",
            "file_url": "u1/1_paper.pdf",
            "file_size_bytes": 10,
            "status": "pending",
            "keywords": ["a", "b"],
        }
        row.update(overrides)
        return self.store.insert("papers", row)

    def test_insert_fills_id_defaults_and_timestamp(self):
        row = self.paper()
        self.assertTrue(row["id"])
        self.assertTrue(row["created_at"])
        self.assertIsNone(row["review_comments"])
        fetched = self.store.get("papers", row["id"])
        self.assertEqual(fetched["keywords"], ["a", "b"])

        user = self.store.insert("users", {"full_name": "A", "email": "a@example.com"})
        self.assertFalse(user["payment_completed"])
        self.assertEqual(user["currency"], "INR")

    def test_select_filters_orders_and_limits(self):
        first = self.paper(created_at="2026-01-01T00:00:00+00:00", status="accepted")
        second = self.paper(created_at="2026-02-01T00:00:00+00:00")
        self.paper(created_at="2026-03-01T00:00:00+00:00", user_id="u2")

        rows = self.store.select(
            "papers", filters={"user_id": "u1"}, order_by="created_at", descending=True
        )
        self.assertEqual([row["id"] for row in rows], [second["id"], first["id"]])
        limited = self.store.select("papers", order_by="created_at", limit=1)
        self.assertEqual(limited[0]["id"], first["id"])
        accepted = self.store.select("papers", filters={"status": "accepted"})
        self.assertEqual([row["id"] for row in accepted], [first["id"]])

    def test_update_and_delete(self):
        row = self.paper()
        updated = self.store.update("papers", row["id"], {"status": "rejected"})
        self.assertEqual(updated["status"], "rejected")
        self.assertIsNone(self.store.update("papers", "missing", {"status": "rejected"}))

        self.assertTrue(self.store.delete("papers", row["id"]))
        self.assertFalse(self.store.delete("papers", row["id"]))
        self.assertIsNone(self.store.get("papers", row["id"]))

    def test_delete_where(self):
        self.paper(user_id="u9")
        self.paper(user_id="u9")
        self.paper(user_id="u8")
        self.assertEqual(self.store.delete_where("papers", {"user_id": "u9"}), 2)
        self.assertEqual(len(self.store.select("papers", filters={"user_id": "u8"})), 1)

    def test_atomic_rolls_back_on_error(self):
        row = self.paper(user_id="u7")
        with self.assertRaises(RuntimeError):
            with self.store.atomic() as tx:
                tx.update("papers", row["id"], {"status": "accepted"})
                tx.insert("payments", {"user_id": "u7", "amount": 1.0, "currency": "INR", "status": "created"})
                raise RuntimeError("boom")

        self.assertEqual(self.store.get("papers", row["id"])["status"], "pending")
        self.assertEqual(self.store.select("payments", filters={"user_id": "u7"}), [])

    def test_atomic_commits(self):
        row = self.paper(user_id="u6")
        with self.store.atomic() as tx:
            tx.update("papers", row["id"], {"status": "accepted"})
        self.assertEqual(self.store.get("papers", row["id"])["status"], "accepted")

    def test_unknown_table_and_column(self):
        with self.assertRaises(UpstreamFailure):
            self.store.select("reviews")
        with self.assertRaises(UpstreamFailure):
            self.store.insert("papers", {"colour": "red"})


class InMemoryRecordStoreTests(RecordStoreContract, unittest.TestCase):
    def setUp(self):
        self.store = InMemoryRecordStore()


class SqlRecordStoreTests(RecordStoreContract, unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the SQL store.
    """

    def setUp(self):
        self.store = SqlRecordStore("sqlite+pysqlite:///:memory:")

    def test_database_errors_become_upstream_failures(self):
        self.paper(id="fixed")
        with self.assertRaises(UpstreamFailure):
            self.paper(id="fixed")


if __name__ == "__main__":
    unittest.main()
