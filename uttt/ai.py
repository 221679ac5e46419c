"""AI for Ultimate Tic Tac Toe.

SEARCH
──────
Depth-limited minimax with alpha-beta pruning over ``apply_move``. Every
root move gets its own full-window search so each one carries an exact
score; below the root, moves are searched best-first (see ``move_priority``)
because alpha-beta only prunes well when strong moves come first.

HEURISTIC
─────────
1. Meta-board win/loss ends the evaluation: ±meta_win.
2. Meta two-in-a-rows (two owned boards + one open board on a line).
3. Owned boards, weighted by board importance: CENTER > CORNERS > EDGES.
4. Every open board is scored locally (threats, center, corners) and scaled
   by the same importance.
5. Handing the opponent free choice (sending them to a decided board) costs
   the sender.

DIFFICULTY
──────────
With probability ``mistake_rate`` the AI plays one of the runners-up instead
of the best move, never one scoring more than ``safety_margin`` below it.
The rate drifts after every game: down when the human wins, up when the AI
wins, always clamped to the configured range.
"""
import logging
import math
import random
import time

from .config import DEFAULT_WEIGHTS, DifficultySettings, get_config
from .logic import (CENTER, CORNERS, DRAW, MARKS, O, WIN_LINES, apply_move,
                    check_win, opponent)

logger = logging.getLogger(__name__)


# ── Heuristic evaluation ──────────────────────────────────────────────────────
def count_two_in_rows(grid, mark):
    """Lines holding two ``mark`` and one empty (or undecided) position."""
    count = 0
    for a, b, c in WIN_LINES:
        line = (grid[a], grid[b], grid[c])
        if line.count(mark) == 2 and line.count(None) == 1:
            count += 1
    return count

def _local_score(board, player, opp, weights):
    result = check_win(board)
    if result == player: return weights.local_win
    if result == opp:    return -weights.local_win
    if result == DRAW:   return 0

    score = (count_two_in_rows(board, player) - count_two_in_rows(board, opp)) * weights.local_two_in_row
    if board[CENTER] == player:  score += weights.local_center
    elif board[CENTER] == opp:   score -= weights.local_center
    for i in CORNERS:
        if board[i] == player:   score += weights.local_corner
        elif board[i] == opp:    score -= weights.local_corner
    return score

def evaluate(state, player, weights=DEFAULT_WEIGHTS):
    """Score ``state`` for ``player``. Positive = good for ``player``."""
    opp = opponent(player)
    if state.winner == player: return weights.meta_win
    if state.winner == opp:    return -weights.meta_win
    if state.winner == DRAW:   return 0

    winners = state.winners
    score = (count_two_in_rows(winners, player) - count_two_in_rows(winners, opp)) * weights.meta_two_in_row

    for i in range(9):
        importance = weights.importance(i)
        if winners[i] == player:
            score += weights.meta_owned * importance
        elif winners[i] == opp:
            score -= weights.meta_owned * importance
        elif winners[i] is None:
            score += _local_score(state.boards[i], player, opp, weights) * importance

    # The player to move got free choice from whoever moved last
    if state.forced is None:
        score += weights.send_to_won_board if state.player == player else -weights.send_to_won_board

    return score


# ── Move ordering ─────────────────────────────────────────────────────────────
def move_priority(state, move, weights=DEFAULT_WEIGHTS, mark=None):
    """Fast priority for move ordering. Higher = try first."""
    b, c = move
    mark = mark or state.player
    opp = opponent(mark)

    after = apply_move(state, move, mark)
    if after.winner == mark: return weights.order_win_game

    score = 0
    board = state.boards[b]
    if after.winners[b] == mark:
        score += weights.order_win_board

    # Would the opponent have taken this board (or the game) here?
    theirs = apply_move(state, move, opp)
    if theirs.winner == opp:
        score += weights.order_win_game // 2
    elif theirs.winners[b] == opp:
        score += weights.order_block

    gained = count_two_in_rows(after.boards[b], mark) - count_two_in_rows(board, mark)
    if gained > 0:
        score += gained * weights.order_threat

    if after.forced is None:
        score -= weights.order_free_choice

    if c == CENTER:    score += weights.order_center
    elif c in CORNERS: score += weights.order_corner
    score += weights.order_board * weights.importance(b)
    return score

def order_moves(moves, state, mark=None, weights=DEFAULT_WEIGHTS, rng=None, top_k=None):
    """Sort ``moves`` best-first for ``mark``.

    With ``rng`` each priority gets up to ``order_jitter`` of noise, far less
    than the gap between a winning or blocking move and a quiet one.
    """
    scored = []
    for move in moves:
        p = move_priority(state, move, weights, mark)
        if rng is not None: p += rng.random() * weights.order_jitter
        scored.append((p, move))
    scored.sort(key=lambda pm: pm[0], reverse=True)
    ordered = [m for _, m in scored]
    return ordered[:top_k] if top_k else ordered


# ── Alpha-Beta ────────────────────────────────────────────────────────────────
def alphabeta(state, depth, maximizing, alpha, beta, ai,
              weights=DEFAULT_WEIGHTS, top_k=None, rng=None, stats=None):
    if stats is not None: stats["nodes"] += 1
    if state.winner or depth == 0:
        return evaluate(state, ai, weights)
    moves = state.valid_moves()
    if not moves: return 0

    ordered = order_moves(moves, state, state.player, weights, rng, top_k)
    if maximizing:
        best_val = -math.inf
        for move in ordered:
            val = alphabeta(apply_move(state, move), depth-1, False, alpha, beta, ai,
                            weights, top_k, rng, stats)
            best_val = max(best_val, val)
            alpha = max(alpha, best_val)
            if beta <= alpha: break
        return best_val
    else:
        best_val = math.inf
        for move in ordered:
            val = alphabeta(apply_move(state, move), depth-1, True, alpha, beta, ai,
                            weights, top_k, rng, stats)
            best_val = min(best_val, val)
            beta = min(beta, best_val)
            if beta <= alpha: break
        return best_val

def score_root_moves(state, ai, depth, weights=DEFAULT_WEIGHTS, top_k=None, rng=None, stats=None):
    """[(move, score), ...] for every legal root move, in search order.

    ``top_k`` only trims the tree below the root.
    """
    depth = max(1, depth)
    ordered = order_moves(state.valid_moves(), state, ai, weights, rng)
    return [(move, alphabeta(apply_move(state, move), depth-1, False, -math.inf, math.inf, ai,
                             weights, top_k, rng, stats))
            for move in ordered]


# ── Adaptive difficulty ───────────────────────────────────────────────────────
class DifficultyController:
    def __init__(self, settings=None, mistake_rate=None, rng=None):
        self.settings = settings or DifficultySettings()
        self.rng = rng or random.Random()
        start = self.settings.initial if mistake_rate is None else mistake_rate
        self.mistake_rate = self.settings.clamp(start)

    def select_move(self, root_moves, root_scores):
        """Best-scoring move, or now and then a plausible runner-up."""
        if not root_moves: return None
        ranked = sorted(zip(root_moves, root_scores), key=lambda ms: ms[1], reverse=True)
        best_move, best_score = ranked[0]
        if len(ranked) > 1 and self.rng.random() < self.mistake_rate:
            s = self.settings
            pool = [m for m, score in ranked[1:1 + s.mistake_pool]
                    if best_score - score <= s.safety_margin]
            if pool:
                move = self.rng.choice(pool)
                logger.debug("deliberate mistake: %s instead of %s", move, best_move)
                return move
        return best_move

    def adjust(self, player_won):
        s = self.settings
        old = self.mistake_rate
        self.mistake_rate = s.clamp(old - s.step_harder if player_won else old + s.step_easier)
        logger.info("mistake rate %.3f -> %.3f (%s won)", old, self.mistake_rate,
                    "human" if player_won else "AI")
        return self.mistake_rate

    def game_ended(self, winner, ai_mark):
        if winner not in MARKS: return self.mistake_rate
        return self.adjust(winner != ai_mark)


# ── Player ────────────────────────────────────────────────────────────────────
class AIPlayer:
    """Picks moves for whoever is to move and adapts across games as ``player``."""

    def __init__(self, player=O, difficulty="medium", config=None, rng=None, seed=None,
                 mistake_rate=None):
        self.player = player
        self.config = config or get_config(difficulty)
        self.rng = rng or random.Random(seed)
        self.difficulty = DifficultyController(self.config.difficulty, mistake_rate, self.rng)
        self.last_scores = []
        self.nodes = 0

    @property
    def mistake_rate(self):
        return self.difficulty.mistake_rate

    def choose_move(self, state):
        valid = state.valid_moves()
        if not valid: return None
        ai = state.player
        s = self.config.search
        stats = {"nodes": 0}
        t0 = time.time()
        try:
            scored = score_root_moves(state, ai, s.depth, self.config.weights, s.top_k,
                                      self.rng if s.jitter else None, stats)
            move = self.difficulty.select_move([m for m, _ in scored], [v for _, v in scored])
        except Exception:
            logger.exception("search failed; playing a random legal move")
            self.last_scores = []
            return self.rng.choice(valid)
        self.last_scores = scored
        self.nodes = stats["nodes"]
        logger.debug("%s: %d root moves, %d nodes, %.3fs -> %s",
                     ai, len(scored), self.nodes, time.time() - t0, move)
        return move

    def game_ended(self, winner):
        return self.difficulty.game_ended(winner, self.player)


# ── Public API ────────────────────────────────────────────────────────────────
def get_ai_move(game, difficulty="medium", seed=None):
    """Move for the player to move in ``game`` (a ``GameState`` or an
    ``UltimateTicTacToe``), or ``None`` if there is none."""
    state = getattr(game, "position", game)
    return AIPlayer(state.player, difficulty, seed=seed).choose_move(state)
