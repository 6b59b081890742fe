import unittest
from unittest.mock import patch

from confdesk.cache import InMemoryCache


class InMemoryCacheTests(unittest.TestCase):
    def test_set_get_delete(self):
        cache = InMemoryCache()
        cache.set("session:abc", {"id": "u1", "email": "a@example.com"})
        self.assertEqual(cache.get("session:abc")["id"], "u1")
        cache.delete("session:abc")
        self.assertIsNone(cache.get("session:abc"))

    def test_add_only_when_absent(self):
        cache = InMemoryCache()
        self.assertTrue(cache.add("upload:u1:hash", {"file_name": "a.pdf"}, 60))
        self.assertFalse(cache.add("upload:u1:hash", {"file_name": "b.pdf"}, 60))
        self.assertEqual(cache.get("upload:u1:hash"), {"file_name": "a.pdf"})

    @patch("confdesk.cache.time.monotonic")
    def test_entries_expire(self, monotonic):
        monotonic.return_value = 100.0
        cache = InMemoryCache()
        cache.add("upload:u1:hash", {"file_name": "a.pdf"}, 10)

        monotonic.return_value = 109.0
        self.assertIsNotNone(cache.get("upload:u1:hash"))
        monotonic.return_value = 110.0
        self.assertIsNone(cache.get("upload:u1:hash"))
        self.assertTrue(cache.add("upload:u1:hash", {"file_name": "a.pdf"}, 10))


if __name__ == "__main__":
    unittest.main()
