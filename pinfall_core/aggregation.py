"""Per-stage pinfall aggregation and stage completion.

Only recorded games count: a partially bowled stage still has a valid total,
average and high game. ``total`` is scratch plus carryover; handicap and
bonus pins are reported beside it (``grand_total``) but never change it.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Sequence

from .format import ResolvedFormat
from .validation import Registration, StageScoreEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StageTotals:
    registration_id: str
    player_name: str
    stage_index: int
    scores: tuple[int, ...]
    carryover: int
    scratch_total: int
    total: int
    games_played: int
    average: int | None
    high: int | None
    handicap_total: int = 0
    bonus_total: int = 0
    grand_total: int = 0
    games_required: int = 0
    complete: bool = False


def round_half_up(value: Decimal | int | float | str) -> int:
    """Round to the nearest integer, halves away from zero (300.5 -> 301)."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def game_average(scores: Sequence[int]) -> int | None:
    if not scores:
        return None
    return round_half_up(Decimal(sum(scores)) / Decimal(len(scores)))


def aggregate_entry(
    entry: StageScoreEntry | None,
    *,
    registration_id: str = "",
    player_name: str = "",
    stage_index: int | None = None,
    games_required: int = 0,
    complete: bool = False,
) -> StageTotals:
    """Aggregate one stage entry.

    A missing entry aggregates to zero games with undefined average/high.
    """
    idx = stage_index if stage_index is not None else (entry.stage_index if entry else 0)
    scores = tuple(entry.scores) if entry else ()
    carryover = entry.carryover if entry else 0
    if idx == 0 and carryover:
        logger.warning(
            f"Ignoring carryover {carryover} on qualifying stage for registration {registration_id}"
        )
        carryover = 0
    scratch = sum(scores)
    games_played = len(scores)
    handicap_total = (entry.handicap * games_played) if entry else 0
    bonus_total = sum(entry.bonus_pins) if entry else 0
    total = scratch + carryover
    return StageTotals(
        registration_id=registration_id,
        player_name=player_name,
        stage_index=idx,
        scores=scores,
        carryover=carryover,
        scratch_total=scratch,
        total=total,
        games_played=games_played,
        average=game_average(scores),
        high=max(scores) if scores else None,
        handicap_total=handicap_total,
        bonus_total=bonus_total,
        grand_total=total + handicap_total + bonus_total,
        games_required=games_required,
        complete=complete,
    )


def is_stage_complete(registration: Registration, stage_index: int, fmt: ResolvedFormat) -> bool:
    """True iff the player currently sits in ``stage_index`` and has bowled
    exactly the stage's game count there.

    Raises:
        IndexError: If ``stage_index`` is not a configured stage
    """
    stage = fmt.stage(stage_index)
    if registration.current_stage != stage_index:
        return False
    entry = registration.entry_for(stage_index)
    if entry is None:
        return False
    return len(entry.scores) == stage.games


def aggregate_registration(
    registration: Registration, stage_index: int, fmt: ResolvedFormat
) -> StageTotals:
    stage = fmt.stage(stage_index)
    return aggregate_entry(
        registration.entry_for(stage_index),
        registration_id=registration.id,
        player_name=registration.player_name,
        stage_index=stage_index,
        games_required=stage.games,
        complete=is_stage_complete(registration, stage_index, fmt),
    )


def aggregate_stage(
    registrations: Iterable[Registration],
    stage_index: int,
    fmt: ResolvedFormat,
    *,
    require_games: bool = True,
) -> List[StageTotals]:
    """Aggregate every registration that has an entry for the stage.

    Args:
        registrations: parsed registrations, in the order rows should tie-break
        stage_index: stage to aggregate
        fmt: resolved tournament format
        require_games: skip players with no recorded game in the stage
    """
    fmt.stage(stage_index)
    rows: List[StageTotals] = []
    for registration in registrations:
        entry = registration.entry_for(stage_index)
        if entry is None:
            continue
        if require_games and not entry.scores:
            continue
        rows.append(aggregate_registration(registration, stage_index, fmt))
    return rows


def completed_players(
    registrations: Iterable[Registration], stage_index: int, fmt: ResolvedFormat
) -> List[StageTotals]:
    """Players whose current stage is ``stage_index`` and who finished it."""
    return [
        aggregate_registration(registration, stage_index, fmt)
        for registration in registrations
        if is_stage_complete(registration, stage_index, fmt)
    ]
