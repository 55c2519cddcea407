import os
import tempfile
import unittest

from llmchess_play.store import JsonSessionStore


class JsonSessionStoreTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.path = os.path.join(self._tmp.name, "nested", "saved_games.json")
        self.store = JsonSessionStore(self.path)

    def test_missing_file_lists_nothing(self):
        self.assertEqual(self.store.list(), [])
        self.assertIsNone(self.store.load("1"))

    def test_save_appends_then_replaces_in_place(self):
        self.store.save({"id": "1", "history": []})
        self.store.save({"id": "2", "history": []})
        self.store.save({"id": "1", "history": ["e4"]})
        snaps = self.store.list()
        self.assertEqual([s["id"] for s in snaps], ["1", "2"])
        self.assertEqual(self.store.load("1")["history"], ["e4"])

    def test_records_survive_a_new_store_instance(self):
        self.store.save({"id": "7", "history": ["d4"]})
        self.assertEqual(JsonSessionStore(self.path).load("7")["history"], ["d4"])

    def test_remove(self):
        self.store.save({"id": "1"})
        self.assertTrue(self.store.remove("1"))
        self.assertFalse(self.store.remove("1"))
        self.assertEqual(self.store.list(), [])

    def test_corrupt_file_reads_as_empty(self):
        os.makedirs(os.path.dirname(self.path), exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as fh:
            fh.write("{not json")
        with self.assertLogs("session_store", level="ERROR"):
            self.assertEqual(self.store.list(), [])

    def test_entries_without_id_are_ignored(self):
        os.makedirs(os.path.dirname(self.path), exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as fh:
            fh.write('[{"id": "1"}, {"position": "x"}, 3]')
        self.assertEqual(self.store.list(), [{"id": "1"}])


if __name__ == "__main__":
    unittest.main()
