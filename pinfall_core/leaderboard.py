"""Stage leaderboard ranking.

Single source of truth for stage ordering across results view and advancement:
- Comparator: higher ``total`` (scratch + carryover) first.
- Equal totals: ``input_order`` keeps the caller's order (default);
  ``scratch_then_name`` prefers higher scratch, then player name, then id.
- Positions are always distinct 1..N; podium/advancing flags derive from
  position only.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence

from .aggregation import StageTotals
from .validation import DEFAULT_CONFIG, ScoringConfig, TieBreak


@dataclass(frozen=True)
class LeaderboardRow:
    position: int
    totals: StageTotals
    is_podium: bool
    is_advancing: bool

    @property
    def registration_id(self) -> str:
        return self.totals.registration_id

    @property
    def player_name(self) -> str:
        return self.totals.player_name

    @property
    def total(self) -> int:
        return self.totals.total


def _input_order_key(indexed: tuple[int, StageTotals]) -> tuple:
    idx, totals = indexed
    return (-totals.total, idx)


def _scratch_then_name_key(indexed: tuple[int, StageTotals]) -> tuple:
    idx, totals = indexed
    return (
        -totals.total,
        -totals.scratch_total,
        totals.player_name.lower(),
        totals.registration_id,
        idx,
    )


_TIE_BREAK_KEYS: dict[str, Callable[[tuple[int, StageTotals]], tuple]] = {
    "input_order": _input_order_key,
    "scratch_then_name": _scratch_then_name_key,
}


def rank_players(
    players: Sequence[StageTotals],
    *,
    advancing_bowlers: int | None = None,
    config: ScoringConfig | None = None,
    tie_break: TieBreak | None = None,
) -> tuple[LeaderboardRow, ...]:
    """
    Rank aggregated players within one stage.

    Args:
      players: aggregated players; their order is the input-order tie-break.
      advancing_bowlers: top N flagged as advancing (None/0 = nobody).
      config: podium size and default tie-break policy.
      tie_break: override the config's tie-break policy.
    """
    config = config or DEFAULT_CONFIG
    policy = tie_break or config.tie_break
    try:
        key = _TIE_BREAK_KEYS[policy]
    except KeyError:
        raise ValueError(f"unknown tie-break policy: {policy!r}")
    advancing = advancing_bowlers if advancing_bowlers and advancing_bowlers > 0 else 0

    ordered = sorted(enumerate(players), key=key)
    return tuple(
        LeaderboardRow(
            position=pos,
            totals=totals,
            is_podium=pos <= config.podium_places,
            is_advancing=pos <= advancing,
        )
        for pos, (_, totals) in enumerate(ordered, start=1)
    )
