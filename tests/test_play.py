import io
import os
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from unittest.mock import AsyncMock, patch

import play
from llmchess_play.errors import ProviderError
from llmchess_play.llm_client import ProviderClient
from llmchess_play.store import JsonSessionStore


class PlayMainTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.store_path = os.path.join(self._tmp.name, "saved_games.json")

    def run_main(self, *argv, moves=()):
        out, err = io.StringIO(), io.StringIO()
        with patch("builtins.input", side_effect=list(moves)), redirect_stdout(out), redirect_stderr(err):
            code = play.main(["--store", self.store_path, *argv])
        return code, out.getvalue(), err.getvalue()

    def test_resume_of_missing_game_without_names(self):
        code, _, err = self.run_main("--resume", "gone")
        self.assertEqual(code, 2)
        self.assertIn("error: invalid_setup", err)
        self.assertIn("gone", err)

    def test_provider_failure_saves_the_game(self):
        failing = AsyncMock(side_effect=ProviderError("Cohere", "unavailable", status=503))
        with patch.object(ProviderClient, "complete", failing):
            code, _, err = self.run_main(
                "--white", "Alice", "--mode", "llm", "--provider", "Cohere", "--api-key", "key-1",
                moves=["e2e4"],
            )
        self.assertEqual(code, 1)
        self.assertIn("error: provider_error", err)
        saved = JsonSessionStore(self.store_path).list()
        self.assertEqual(len(saved), 1)
        self.assertEqual(saved[0]["history"], ["e4"])
        self.assertEqual(saved[0]["turn"], "b")

    def test_pause_from_the_prompt(self):
        code, out, _ = self.run_main("--white", "Alice", "--black", "Bob", moves=["e2e4", "pause"])
        self.assertEqual(code, 0)
        self.assertIn("saved", out)
        self.assertEqual(JsonSessionStore(self.store_path).list()[0]["history"], ["e4"])

    def test_list_saved_games(self):
        self.run_main("--white", "Alice", "--black", "Bob", moves=["pause"])
        code, out, _ = self.run_main("--list")
        self.assertEqual(code, 0)
        self.assertIn("Alice vs Bob", out)


if __name__ == "__main__":
    unittest.main()
