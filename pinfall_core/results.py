"""Tournament results: ranked leaderboards per stage, squad grouping for display."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

from .aggregation import aggregate_stage
from .format import resolve_format
from .leaderboard import LeaderboardRow, rank_players
from .validation import (
    DEFAULT_CONFIG,
    Registration,
    ScoringConfig,
    Squad,
    Tournament,
    parse_registrations,
    parse_tournament,
)


@dataclass(frozen=True)
class StageResults:
    stage_index: int
    name: str
    games: int
    advancing_bowlers: int | None
    carryover_pinfall: bool
    rows: tuple[LeaderboardRow, ...]


@dataclass(frozen=True)
class TournamentResults:
    tournament_id: str
    name: str
    staged: bool
    stages: tuple[StageResults, ...]


@dataclass(frozen=True)
class SquadGroup:
    squad_id: str | None  # None = players without a matching squad
    name: str
    rows: tuple[LeaderboardRow, ...]


def stage_leaderboard(
    tournament: Tournament | Dict[str, Any],
    registrations: Sequence[Registration | Dict[str, Any]],
    stage_index: int,
    config: ScoringConfig | None = None,
) -> StageResults:
    """Ranked rows for one stage.

    Lists active players with at least one recorded game in the stage who
    have reached it (currentStage >= stage_index), ranked by total.

    Raises:
        IndexError: If ``stage_index`` is not a configured stage
    """
    config = config or DEFAULT_CONFIG
    fmt = resolve_format(parse_tournament(tournament, config), config)
    stage = fmt.stage(stage_index)
    regs = [
        r
        for r in parse_registrations(registrations, config)
        if r.is_active and r.current_stage >= stage_index
    ]
    players = aggregate_stage(regs, stage_index, fmt)
    advancing = stage.advancing_bowlers if fmt.staged else None
    return StageResults(
        stage_index=stage_index,
        name=stage.name,
        games=stage.games,
        advancing_bowlers=advancing,
        carryover_pinfall=stage.carryover_pinfall and stage_index > 0,
        rows=rank_players(players, advancing_bowlers=advancing, config=config),
    )


def tournament_results(
    tournament: Tournament | Dict[str, Any],
    registrations: Sequence[Registration | Dict[str, Any]],
    config: ScoringConfig | None = None,
) -> TournamentResults:
    """Leaderboards for every stage (one pseudo-stage when single-stage)."""
    config = config or DEFAULT_CONFIG
    parsed = parse_tournament(tournament, config)
    regs = parse_registrations(registrations, config)
    fmt = resolve_format(parsed, config)
    return TournamentResults(
        tournament_id=parsed.id,
        name=parsed.name,
        staged=fmt.staged,
        stages=tuple(
            stage_leaderboard(parsed, regs, idx, config) for idx in range(fmt.stage_count)
        ),
    )


def group_by_squad(
    rows: Sequence[LeaderboardRow],
    registrations: Sequence[Registration | Dict[str, Any]],
    squads: Sequence[Squad],
) -> List[SquadGroup]:
    """Split qualifying rows by assigned squad, in squad definition order.

    A player in several squads is listed under each. Positions are kept as
    ranked overall; empty squads are omitted.
    """
    squads_by_reg: Dict[str, List[str]] = {
        r.id: r.assigned_squads for r in parse_registrations(registrations)
    }
    known = {squad.id for squad in squads}
    groups: List[SquadGroup] = []
    for squad in squads:
        members = tuple(
            row for row in rows if squad.id in squads_by_reg.get(row.registration_id, [])
        )
        if members:
            groups.append(SquadGroup(squad_id=squad.id, name=squad.name, rows=members))
    unassigned = tuple(
        row
        for row in rows
        if not known.intersection(squads_by_reg.get(row.registration_id, []))
    )
    if unassigned:
        groups.append(SquadGroup(squad_id=None, name="Unassigned", rows=unassigned))
    return groups
