"""Turn loop for a human playing against the AI.

The controller owns the only authoritative game. A human move and the AI's
reply are separate steps (``play`` then ``ai_turn``), so the caller decides
when the AI thinks.
"""
import logging
import random

from .ai import AIPlayer
from .logic import DRAW, MARKS, REDIRECT_POLICIES, X, IllegalMove, UltimateTicTacToe, opponent

logger = logging.getLogger(__name__)

HUMAN, AI, OVER = "human", "ai", "over"


class GameController:
    def __init__(self, human=X, difficulty="medium", redirect="free", seed=None, ai=None):
        if human not in MARKS: raise ValueError(f"unknown player {human!r}")
        if redirect not in REDIRECT_POLICIES: raise ValueError(f"unknown redirect policy {redirect!r}")
        self.rng = random.Random(seed)
        self.human = human
        self.redirect = redirect
        self.ai = ai or AIPlayer(opponent(human), difficulty, rng=self.rng)
        self.stats = {"wins": 0, "losses": 0, "draws": 0, "games": 0}
        self.new_game()

    def new_game(self):
        """Start over. An unfinished game is dropped without touching stats."""
        self.game = UltimateTicTacToe(X, REDIRECT_POLICIES[self.redirect], self.rng)
        self.winner = None
        self.last_ai_move = None
        self.phase = HUMAN if self.human == X else AI

    def play(self, b, c):
        if self.phase != HUMAN:
            raise IllegalMove("game is over" if self.phase == OVER else "waiting for the AI")
        self.game.play(b, c)
        self._advance()

    def ai_turn(self):
        if self.phase != AI:
            raise IllegalMove("game is over" if self.phase == OVER else "waiting for the human")
        move = self.ai.choose_move(self.game.position)
        if move is None:
            self._finish(DRAW)
            return None
        self.game.play(*move)
        self.last_ai_move = move
        self._advance()
        return move

    def _advance(self):
        if self.game.game_winner:
            self._finish(self.game.game_winner)
        elif not self.game.get_valid_moves():
            self._finish(DRAW)
        else:
            self.phase = HUMAN if self.game.current_player == self.human else AI

    def _finish(self, winner):
        self.phase = OVER
        self.winner = winner
        self.stats["games"] += 1
        if winner == DRAW:         self.stats["draws"] += 1
        elif winner == self.human: self.stats["wins"] += 1
        else:                      self.stats["losses"] += 1
        self.ai.game_ended(winner)
        logger.info("game over after %d moves: %s (mistake rate now %.3f)",
                    len(self.game.move_history), winner, self.ai.mistake_rate)

    def state(self):
        s = self.game.state()
        s.update({
            "phase":       self.phase,
            "human":       self.human,
            "aiPlayer":    self.ai.player,
            "result":      self.winner,
            "redirect":    self.redirect,
            "stats":       dict(self.stats),
            "mistakeRate": self.ai.mistake_rate,
            "lastAiMove":  list(self.last_ai_move) if self.last_ai_move else None,
            "aiScores":    [{"board": b, "cell": c, "score": v} for (b, c), v in self.ai.last_scores],
        })
        return s
