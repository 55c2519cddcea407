import unittest
from unittest.mock import patch

import server
from fakes import ScriptedClient, TempStoreMixin
from llmchess_play.errors import ProviderError
from llmchess_play.negotiation import ConversationOrchestrator
from llmchess_play.resolver import MoveResolver
from llmchess_play.service import GameService


class ServerTests(TempStoreMixin, unittest.TestCase):
    def setUp(self):
        manager = self.make_manager()
        self.client = ScriptedClient()
        service = GameService(
            manager,
            client=self.client,
            resolver=MoveResolver(self.client, manager, max_attempts=10),
            orchestrator=ConversationOrchestrator(self.client, manager, max_rounds=3, delay_s=0),
        )
        for target, value in (("SERVICE", service), ("AGENT_REPLY_DELAY_S", 0), ("LIVE_GAMES", {})):
            patcher = patch.object(server, target, value)
            patcher.start()
            self.addCleanup(patcher.stop)
        self.http = server.app.test_client()

    def new_game(self, **payload):
        rsp = self.http.post("/api/games", json=payload)
        self.assertEqual(rsp.status_code, 200, rsp.get_json())
        return rsp.get_json()

    def human_game(self):
        return self.new_game(mode="human", playerWhite="Alice", playerBlack="Bob")

    def agent_game(self, **extra):
        return self.new_game(mode="llm", playerWhite="Alice", llmProvider="Cohere", apiKey="key-1", **extra)

    def test_create_human_game(self):
        body = self.human_game()
        self.assertEqual(body["turn"], "w")
        self.assertEqual(body["player_to_move"], "Alice")
        self.assertEqual(body["history"], [])
        self.assertIsNone(body["agent"])

    def test_invalid_setup(self):
        rsp = self.http.post("/api/games", json={"mode": "human", "playerWhite": "Alice"})
        self.assertEqual(rsp.status_code, 400)
        self.assertEqual(rsp.get_json()["error"], "invalid_setup")
        rsp = self.http.post("/api/games", json={"mode": "llm", "playerWhite": "Alice"})
        self.assertEqual(rsp.status_code, 400)
        self.assertEqual(rsp.get_json()["error"], "missing_credential")
        rsp = self.http.post("/api/games", json={"mode": "robots", "playerWhite": "Alice"})
        self.assertEqual(rsp.status_code, 400)

    def test_human_moves(self):
        game = self.human_game()
        rsp = self.http.post(f"/api/games/{game['id']}/move", json={"from": "e2", "to": "e4"})
        self.assertEqual(rsp.status_code, 200)
        body = rsp.get_json()
        self.assertEqual(body["move"]["san"], "e4")
        self.assertEqual(body["turn"], "b")
        rsp = self.http.post(f"/api/games/{game['id']}/move", json={"from": "e2", "to": "e4"})
        self.assertEqual(rsp.status_code, 422)
        self.assertEqual(rsp.get_json()["move"]["reason"], "illegal_move")

    def test_agent_replies_after_human_move(self):
        game = self.agent_game()
        self.client.replies = ["ANSWER: e7e5"]
        body = self.http.post(f"/api/games/{game['id']}/move", json={"from": "e2", "to": "e4"}).get_json()
        self.assertEqual(body["agent"]["status"], "accepted")
        self.assertEqual(body["history"], ["e4", "e5"])
        self.assertEqual(body["turn"], "w")

    def test_thinking_mode_reply(self):
        game = self.agent_game(thinkingMode=True)
        self.client.replies = ["Meet the centre.", "Agreed. ANSWER: e7e5"]
        body = self.http.post(f"/api/games/{game['id']}/move", json={"from": "e2", "to": "e4"}).get_json()
        self.assertEqual(body["agent"]["status"], "accepted")
        self.assertEqual(body["agent"]["san"], "e5")
        self.assertEqual([u["kind"] for u in body["agent"]["updates"]], ["turn", "turn", "resolved"])
        self.assertEqual(body["conversation"], [])

    def test_provider_failure_maps_to_bad_gateway(self):
        game = self.agent_game()
        self.client.replies = [ProviderError("Cohere", "unavailable", status=503)]
        rsp = self.http.post(f"/api/games/{game['id']}/move", json={"from": "e2", "to": "e4"})
        self.assertEqual(rsp.status_code, 502)
        self.assertEqual(rsp.get_json()["error"], "provider_error")

    def test_agent_move_out_of_turn(self):
        game = self.agent_game()
        rsp = self.http.post(f"/api/games/{game['id']}/agent-move")
        self.assertEqual(rsp.status_code, 409)
        self.assertEqual(rsp.get_json()["error"], "not_your_turn")

    def test_pause_and_resume(self):
        game = self.agent_game()
        self.client.replies = ["ANSWER: e7e5"]
        self.http.post(f"/api/games/{game['id']}/move", json={"from": "e2", "to": "e4"})
        snap = self.http.post(f"/api/games/{game['id']}/pause").get_json()
        self.assertNotIn("agentCredential", snap)
        self.assertEqual(self.http.get(f"/api/games/{game['id']}").status_code, 404)
        saved = self.http.get("/api/games").get_json()
        self.assertEqual([s["id"] for s in saved], [game["id"]])
        resumed = self.new_game(resume=game["id"])
        self.assertEqual(resumed["history"], ["e4", "e5"])
        self.assertEqual(resumed["mode"], "llm")

    def test_end_game_removes_saved_record(self):
        game = self.human_game()
        self.http.post(f"/api/games/{game['id']}/move", json={"from": "e2", "to": "e4"})
        self.assertEqual(len(self.http.get("/api/games").get_json()), 1)
        body = self.http.delete(f"/api/games/{game['id']}").get_json()
        self.assertEqual(body["status"], "terminal")
        self.assertEqual(self.http.get("/api/games").get_json(), [])

    def test_delete_saved_game(self):
        game = self.human_game()
        self.http.post(f"/api/games/{game['id']}/pause")
        self.assertEqual(self.http.delete(f"/api/saved-games/{game['id']}").status_code, 200)
        self.assertEqual(self.http.delete(f"/api/saved-games/{game['id']}").status_code, 404)

    def test_unknown_game(self):
        self.assertEqual(self.http.get("/api/games/nope").status_code, 404)
        self.assertEqual(self.http.post("/api/games/nope/move", json={"from": "e2", "to": "e4"}).status_code, 404)


if __name__ == "__main__":
    unittest.main()
