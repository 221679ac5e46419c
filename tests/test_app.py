import unittest

from app import app, games
from uttt.logic import GameState, apply_move


class TestApi(unittest.TestCase):
    def setUp(self):
        games.clear()
        app.config["TESTING"] = True
        self.client = app.test_client()

    def new_game(self, **options):
        options.setdefault("difficulty", "easy")
        options.setdefault("seed", 1)
        resp = self.client.post("/api/games", json=options)
        self.assertEqual(resp.status_code, 201)
        return resp.get_json()

    def test_create_and_fetch(self):
        data = self.new_game()
        self.assertEqual(data["phase"], "human")
        self.assertEqual(data["player"], "X")
        self.assertIsNone(data["forced"])
        resp = self.client.get(f"/api/games/{data['room']}")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json()["room"], data["room"])

    def test_move_gets_an_ai_reply(self):
        room = self.new_game()["room"]
        resp = self.client.post(f"/api/games/{room}/move", json={"board": 0, "cell": 4})
        self.assertEqual(resp.status_code, 200)
        data = resp.get_json()
        self.assertEqual(len(data["moveHistory"]), 2)
        self.assertEqual(data["lastAiMove"][0], 4)
        self.assertEqual(data["phase"], "human")
        self.assertEqual(len(data["aiScores"]), 9)

    def test_illegal_move_is_rejected(self):
        room = self.new_game()["room"]
        self.client.post(f"/api/games/{room}/move", json={"board": 0, "cell": 4})
        before = self.client.get(f"/api/games/{room}").get_json()
        b, c = before["lastAiMove"]
        resp = self.client.post(f"/api/games/{room}/move", json={"board": b, "cell": c})
        self.assertEqual(resp.status_code, 400)
        self.assertIn("error", resp.get_json())
        after = self.client.get(f"/api/games/{room}").get_json()
        self.assertEqual(after["moveHistory"], before["moveHistory"])

    def test_bad_requests(self):
        room = self.new_game()["room"]
        resp = self.client.post(f"/api/games/{room}/move", json={"board": "x"})
        self.assertEqual(resp.status_code, 400)
        resp = self.client.post("/api/games", json={"difficulty": "impossible"})
        self.assertEqual(resp.status_code, 400)
        resp = self.client.post("/api/games", json={"human": "Z"})
        self.assertEqual(resp.status_code, 400)

    def test_unknown_room(self):
        resp = self.client.get("/api/games/00000")
        self.assertEqual(resp.status_code, 404)
        self.assertIn("error", resp.get_json())

    def test_ai_moves_first_when_human_is_o(self):
        data = self.new_game(human="O")
        self.assertEqual(len(data["moveHistory"]), 1)
        self.assertEqual(data["moveHistory"][0]["player"], "X")
        self.assertEqual(data["phase"], "human")

    def test_rematch_and_close(self):
        room = self.new_game()["room"]
        self.client.post(f"/api/games/{room}/move", json={"board": 0, "cell": 4})
        data = self.client.post(f"/api/games/{room}/rematch").get_json()
        self.assertEqual(data["moveHistory"], [])
        self.assertEqual(data["stats"]["games"], 0)
        self.assertEqual(self.client.delete(f"/api/games/{room}").status_code, 204)
        self.assertEqual(self.client.get(f"/api/games/{room}").status_code, 404)

    def test_stateless_ai_move(self):
        state = apply_move(GameState.new(), (0, 4))
        resp = self.client.post("/api/ai-move", json={"state": state.to_dict(), "difficulty": "easy",
                                                      "mistake_rate": 0.0, "seed": 2})
        self.assertEqual(resp.status_code, 200)
        data = resp.get_json()
        self.assertIn(tuple(data["move"]), state.valid_moves())
        self.assertEqual(len(data["scores"]), 9)
        self.assertEqual(data["mistakeRate"], 0.02)

    def test_stateless_ai_move_rejects_bad_state(self):
        resp = self.client.post("/api/ai-move", json={"state": {"boards": [[None] * 9]}})
        self.assertEqual(resp.status_code, 400)
        resp = self.client.post("/api/ai-move", json=["not", "an", "object"])
        self.assertEqual(resp.status_code, 400)

    def test_seed_must_be_an_integer_or_a_string(self):
        state = GameState.new().to_dict()
        for seed in ([1, 2], {"a": 1}, 1.5, True):
            resp = self.client.post("/api/games", json={"seed": seed})
            self.assertEqual(resp.status_code, 400, seed)
            self.assertIn("seed", resp.get_json()["error"])
            resp = self.client.post("/api/ai-move", json={"state": state, "seed": seed})
            self.assertEqual(resp.status_code, 400, seed)
        self.assertEqual(games, {})
        for seed in (7, "abc", None):
            self.assertEqual(self.client.post("/api/games", json={"seed": seed}).status_code, 201)
            self.assertEqual(self.client.post("/api/ai-move", json={"state": state, "seed": seed}).status_code, 200)

    def test_config_holds_only_game_settings(self):
        self.assertIn(app.config["AI_DIFFICULTY"], ("easy", "medium", "hard"))
        self.assertIn(app.config["REDIRECT"], ("free", "random"))
        self.assertIsNone(app.config.get("SECRET_KEY"))


if __name__ == "__main__":
    unittest.main()
