"""Tunable constants for the AI, grouped into immutable records.

Weights must keep their ordering: winning > blocking > two-in-a-row threats
> positional bonuses. Bump ``version`` whenever a default changes so logged
scores stay comparable.
"""
from dataclasses import dataclass, field, replace
from typing import Optional

from .logic import CENTER, CORNERS


@dataclass(frozen=True)
class Weights:
    version: str = "2"

    # ── Evaluation ──
    meta_win:           int = 100_000
    meta_two_in_row:    int = 500
    meta_owned:         int = 100      # per decided board, x board importance
    local_win:          int = 150      # x board importance
    local_two_in_row:   int = 20
    local_center:       int = 8
    local_corner:       int = 5
    send_to_won_board:  int = 80

    # Board importance on the meta-board: center > corners > edges
    importance_center:  float = 1.5
    importance_corner:  float = 1.2
    importance_edge:    float = 1.0

    # ── Move ordering ──
    order_win_game:     int = 1_000_000
    order_win_board:    int = 10_000
    order_block:        int = 8_000
    order_threat:       int = 300      # per new two-in-a-row
    order_free_choice:  int = 200      # handing the opponent free choice
    order_center:       int = 50
    order_corner:       int = 30
    order_board:        int = 10       # x board importance
    order_jitter:       float = 5.0

    def importance(self, board):
        if board == CENTER: return self.importance_center
        if board in CORNERS: return self.importance_corner
        return self.importance_edge


@dataclass(frozen=True)
class SearchSettings:
    depth: int = 3
    top_k: Optional[int] = None    # None = search every move below the root
    jitter: bool = True


@dataclass(frozen=True)
class DifficultySettings:
    initial:       float = 0.10
    minimum:       float = 0.02
    maximum:       float = 0.25
    step_harder:   float = 0.03    # after the human wins
    step_easier:   float = 0.02    # after the AI wins
    mistake_pool:  int = 2         # how many runners-up a mistake may pick from
    safety_margin: float = 400     # runners-up further below the best are never picked

    def clamp(self, rate):
        return max(self.minimum, min(self.maximum, rate))


@dataclass(frozen=True)
class AIConfig:
    search:     SearchSettings = field(default_factory=SearchSettings)
    difficulty: DifficultySettings = field(default_factory=DifficultySettings)
    weights:    Weights = field(default_factory=Weights)


DEFAULT_WEIGHTS = Weights()

DIFFICULTIES = {
    "easy":   AIConfig(SearchSettings(depth=2), DifficultySettings(initial=0.25)),
    "medium": AIConfig(SearchSettings(depth=3), DifficultySettings(initial=0.10)),
    "hard":   AIConfig(SearchSettings(depth=4), DifficultySettings(initial=0.02)),
}


def get_config(difficulty="medium", **search):
    """Preset for ``difficulty`` with optional search overrides (depth, top_k, jitter)."""
    try:
        cfg = DIFFICULTIES[difficulty]
    except KeyError:
        raise ValueError(f"unknown difficulty {difficulty!r}") from None
    if search:
        cfg = replace(cfg, search=replace(cfg.search, **search))
    return cfg
