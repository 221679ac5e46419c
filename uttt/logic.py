"""Rules for Ultimate Tic Tac Toe.

A position is an immutable ``GameState``: nine sub-boards of nine cells, the
meta-board of sub-board outcomes, the board the next player is sent to
(``None`` = free choice) and the player to move. ``apply_move`` is the only
way to get from one position to the next; the AI search and the authoritative
``UltimateTicTacToe`` game both go through it.
"""
from typing import NamedTuple, Optional, Tuple

X, O, DRAW = "X", "O", "D"
MARKS = (X, O)

WIN_LINES = [
    (0,1,2),(3,4,5),(6,7,8),
    (0,3,6),(1,4,7),(2,5,8),
    (0,4,8),(2,4,6)
]

CENTER = 4
CORNERS = frozenset({0, 2, 6, 8})
EDGES = frozenset({1, 3, 5, 7})


class IllegalMove(ValueError):
    """A move that breaks the rules. The state it was tried on is unchanged."""


def opponent(player):
    return O if player == X else X

def _line_list(grid):
    line = winning_line(grid)
    return list(line) if line else None


# ── Win detection ─────────────────────────────────────────────────────────────
def winning_line(grid):
    for a, b, c in WIN_LINES:
        if grid[a] in MARKS and grid[a] == grid[b] == grid[c]:
            return (a, b, c)
    return None

def check_win(grid):
    """Outcome of a 3x3 grid of cells or sub-board outcomes.

    Returns the winning mark, ``DRAW`` when every position is filled without
    a winning triple, or ``None`` while undecided. ``DRAW`` entries never
    form a winning triple.
    """
    line = winning_line(grid)
    if line: return grid[line[0]]
    return DRAW if all(grid) else None


# ── Board state ───────────────────────────────────────────────────────────────
class GameState(NamedTuple):
    boards: Tuple[Tuple[Optional[str], ...], ...]
    winners: Tuple[Optional[str], ...]
    forced: Optional[int]
    player: str
    winner: Optional[str] = None

    @classmethod
    def new(cls, first=X):
        if first not in MARKS: raise ValueError(f"unknown player {first!r}")
        return cls(tuple((None,)*9 for _ in range(9)), (None,)*9, None, first)

    @classmethod
    def from_dict(cls, data):
        """Build a state from its ``to_dict`` form. Malformed input and a
        meta-board that disagrees with the sub-boards raise ``ValueError``."""
        try:
            boards = tuple(tuple(cell or None for cell in b) for b in data["boards"])
            player = data.get("player", X)
            forced = data.get("forced")
        except (KeyError, TypeError, AttributeError) as e:
            raise ValueError(f"malformed state: {e}") from None
        if len(boards) != 9 or any(len(b) != 9 for b in boards):
            raise ValueError("expected 9 boards of 9 cells")
        if any(cell not in (None,) + MARKS for b in boards for cell in b):
            raise ValueError("cells must be 'X', 'O' or empty")
        if player not in MARKS:
            raise ValueError(f"unknown player {player!r}")
        if forced is not None and (isinstance(forced, bool) or not isinstance(forced, int)
                                   or not 0 <= forced <= 8):
            raise ValueError(f"forced board out of range: {forced!r}")
        for i, b in enumerate(boards):
            if all(any(b[x] == b[y] == b[z] == m for x, y, z in WIN_LINES) for m in MARKS):
                raise ValueError(f"board {i} has a line for both players")
        winners = tuple(check_win(b) for b in boards)
        given = data.get("winners")
        if given is not None and tuple(w or None for w in given) != winners:
            raise ValueError("meta-board does not match sub-board contents")
        if forced is not None and winners[forced]: forced = None
        return cls(boards, winners, forced, player, check_win(winners))

    def to_dict(self):
        return {
            "boards":  [list(b) for b in self.boards],
            "winners": list(self.winners),
            "forced":  self.forced,
            "player":  self.player,
            "winner":  self.winner,
        }

    def valid_moves(self):
        if self.winner: return []
        return legal_moves(self.boards, self.winners, self.forced)


# ── Move generation / transition ──────────────────────────────────────────────
def legal_moves(boards, winners, forced=None):
    """Every (board, cell) the player to move may take.

    Being sent to a decided board grants free choice over all undecided ones.
    """
    if forced is not None and not winners[forced]:
        targets = [forced]
    else:
        targets = [b for b in range(9) if not winners[b]]
    return [(b, c) for b in targets for c in range(9) if boards[b][c] is None]

def next_constraint(winners, cell):
    return None if winners[cell] else cell

def apply_move(state, move, mark=None):
    """Return the position after ``mark`` (default: the player to move) plays
    ``move``. Raises ``IllegalMove`` without touching ``state``."""
    b, c = move
    if state.winner: raise IllegalMove("game is already over")
    if not (0 <= b <= 8 and 0 <= c <= 8):
        raise IllegalMove(f"move {move!r} is off the board")
    if state.winners[b]: raise IllegalMove(f"board {b} is already decided")
    if state.forced is not None and not state.winners[state.forced] and b != state.forced:
        raise IllegalMove(f"must play in board {state.forced}")
    if state.boards[b][c] is not None:
        raise IllegalMove(f"cell {c} of board {b} is taken")

    mark = mark or state.player
    board = state.boards[b][:c] + (mark,) + state.boards[b][c+1:]
    boards = state.boards[:b] + (board,) + state.boards[b+1:]
    winners = state.winners
    result = check_win(board)
    if result:
        winners = winners[:b] + (result,) + winners[b+1:]
    return GameState(boards, winners, next_constraint(winners, c),
                     opponent(mark), check_win(winners))


# ── Send-to-decided-board policies ────────────────────────────────────────────
def free_choice(state, rng=None):
    return state

def random_redirect(state, rng):
    """Swap free choice for a randomly drawn undecided board."""
    if state.winner or state.forced is not None: return state
    open_boards = [b for b in range(9) if not state.winners[b]]
    if not open_boards: return state
    return state._replace(forced=rng.choice(open_boards))

REDIRECT_POLICIES = {"free": free_choice, "random": random_redirect}


# ── Authoritative game ────────────────────────────────────────────────────────
class UltimateTicTacToe:
    def __init__(self, first=X, redirect=free_choice, rng=None):
        self.position = GameState.new(first)
        self.redirect = redirect
        self.rng = rng
        self.last_move = None              # [board, cell]
        self.move_history = []             # [{board, cell, player}, ...]

    @property
    def current_player(self): return self.position.player
    @property
    def forced_board(self): return self.position.forced
    @property
    def game_winner(self): return self.position.winner

    def play(self, b, c):
        """Apply a move, raising ``IllegalMove`` if it is rejected."""
        player = self.position.player
        self.position = self.redirect(apply_move(self.position, (b, c)), self.rng)
        self.last_move = [b, c]
        self.move_history.append({"board": b, "cell": c, "player": player})

    def make_move(self, b, c):
        try:
            self.play(b, c)
        except IllegalMove:
            return False
        return True

    def get_valid_moves(self):
        return self.position.valid_moves()

    def state(self):
        s = self.position.to_dict()
        s.update({
            "boardWinLines": [_line_list(b) for b in self.position.boards],
            "gameWinLine":   _line_list(self.position.winners),
            "lastMove":      self.last_move,
            "moveHistory":   self.move_history,
        })
        return s
