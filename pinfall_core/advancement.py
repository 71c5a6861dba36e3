"""Stage advancement: pick the top finishers of each stage and promote them.

Architecture:
- plan_advancement() is pure: (tournament, registrations) -> AdvancementPlan
- advance_players() reads from a RecordStore, plans, then writes one patch
  per promoted player and reports an AdvancementOutcome
- Writes are independent; a failed write is counted, never rolled back

Self-limiting:
- Each stage only considers players whose currentStage equals that stage.
- Players already past a stage keep their advancing slot: the stage hands
  out advancingBowlers minus that count. Re-running without new scores
  promotes nobody, and re-running after a partial failure only fills the
  slots whose write failed.
- Eligibility is evaluated on the registration snapshot read at the start
  of the run; a player promoted 0 -> 1 is not considered for stage 1 in the
  same run.
"""
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Literal, Sequence

from .aggregation import completed_players, round_half_up
from .format import resolve_format
from .leaderboard import rank_players
from .store import RecordStore
from .types import RegistrationPatch
from .validation import (
    DEFAULT_CONFIG,
    Registration,
    ScoringConfig,
    Stage,
    Tournament,
    parse_registrations,
    parse_tournament,
)

logger = logging.getLogger(__name__)

AdvancementKind = Literal["advanced", "none_eligible", "not_applicable", "partial_failure"]

NOT_APPLICABLE_MESSAGE = "This tournament does not have multiple stages"
NONE_ELIGIBLE_MESSAGE = (
    "No players ready to advance. Make sure all games are completed for each stage."
)


@dataclass(frozen=True)
class AdvancementMove:
    registration_id: str
    player_name: str
    from_stage: int
    to_stage: int
    position: int
    total: int
    carryover: int


@dataclass(frozen=True)
class AdvancementPlan:
    applicable: bool
    moves: tuple[AdvancementMove, ...] = ()
    message: str | None = None


@dataclass(frozen=True)
class AdvancementFailure:
    registration_id: str
    player_name: str
    reason: str


@dataclass
class AdvancementOutcome:
    """Result of an advancement run, as shown to the operator."""

    kind: AdvancementKind
    advanced: int = 0
    failed: int = 0
    moves: List[AdvancementMove] = field(default_factory=list)
    failures: List[AdvancementFailure] = field(default_factory=list)
    message: str | None = None


def next_stage_carryover(total: int, next_stage: Stage) -> int:
    """Pinfall a promoted player brings into ``next_stage``.

    Examples:
        - carryoverPinfall off → 0
        - 50%, total 601 → 301 (300.5 rounds half up)
    """
    if not next_stage.carryover_pinfall:
        return 0
    pct = Decimal(str(next_stage.carryover_percentage))
    return round_half_up(Decimal(total) * pct / Decimal(100))


def plan_advancement(
    tournament: Tournament | Dict[str, Any],
    registrations: Sequence[Registration | Dict[str, Any]],
    config: ScoringConfig | None = None,
) -> AdvancementPlan:
    """Decide who advances out of every stage that has an advancing count.

    Args:
        tournament: tournament model or raw document
        registrations: registration models or raw documents; their order is
            the tie-break order for equal totals under the default policy
        config: scoring config (tie-break policy, defaults)

    Returns:
        AdvancementPlan with applicable=False when the tournament is not a
        multi-stage one; otherwise the moves in ascending stage order.
    """
    config = config or DEFAULT_CONFIG
    parsed_tournament = parse_tournament(tournament, config)
    fmt = resolve_format(parsed_tournament, config)
    if not fmt.can_advance:
        return AdvancementPlan(applicable=False, message=NOT_APPLICABLE_MESSAGE)

    regs = [r for r in parse_registrations(registrations, config) if r.is_active]
    moves: List[AdvancementMove] = []
    for stage_index in range(fmt.stage_count - 1):
        stage = fmt.stage(stage_index)
        if not stage.advances:
            continue
        # Slots already used by players who moved past this stage are not handed out again.
        taken = sum(1 for r in regs if r.current_stage > stage_index)
        slots = stage.advancing_bowlers - taken
        if slots <= 0:
            continue
        pool = completed_players(regs, stage_index, fmt)
        if not pool:
            continue
        next_stage = fmt.stage(stage_index + 1)
        ranked = rank_players(pool, advancing_bowlers=slots, config=config)
        for row in ranked:
            if not row.is_advancing:
                break
            carryover = next_stage_carryover(row.total, next_stage)
            logger.debug(
                f"Stage {stage_index}: {row.player_name} ({row.registration_id}) "
                f"position {row.position} total {row.total} -> carryover {carryover}"
            )
            moves.append(
                AdvancementMove(
                    registration_id=row.registration_id,
                    player_name=row.player_name,
                    from_stage=stage_index,
                    to_stage=stage_index + 1,
                    position=row.position,
                    total=row.total,
                    carryover=carryover,
                )
            )
    if not moves:
        return AdvancementPlan(applicable=True, message=NONE_ELIGIBLE_MESSAGE)
    return AdvancementPlan(applicable=True, moves=tuple(moves))


def advancement_patch(move: AdvancementMove) -> RegistrationPatch:
    """Patch promoting one player; never touches recorded scores."""
    return {
        "currentStage": move.to_stage,
        "stageScores": [{"stageIndex": move.to_stage, "carryover": move.carryover}],
    }


_locks_guard = threading.Lock()
_tournament_locks: Dict[str, threading.Lock] = {}


@contextmanager
def _tournament_lock(tournament_id: str) -> Iterator[None]:
    # Serializes runs per tournament within this process. One lock is kept per
    # tournament id seen, for the life of the process.
    with _locks_guard:
        lock = _tournament_locks.setdefault(tournament_id, threading.Lock())
    with lock:
        yield


def advance_players(
    store: RecordStore,
    tournament_id: str,
    config: ScoringConfig | None = None,
) -> AdvancementOutcome:
    """Promote the top finishers of every completed stage of a tournament.

    Raises:
        LookupError: If the store has no such tournament
    """
    with _tournament_lock(tournament_id):
        tournament_doc = store.get_tournament(tournament_id)
        if tournament_doc is None:
            raise LookupError(f"tournament {tournament_id} not found")
        registrations = store.list_registrations(tournament_id)
        plan = plan_advancement(tournament_doc, registrations, config)

        if not plan.applicable:
            logger.info(f"Advancement not applicable for tournament {tournament_id}")
            return AdvancementOutcome(kind="not_applicable", message=plan.message)
        if not plan.moves:
            logger.info(f"No eligible players to advance in tournament {tournament_id}")
            return AdvancementOutcome(kind="none_eligible", message=plan.message)

        outcome = AdvancementOutcome(kind="advanced")
        for move in plan.moves:
            try:
                ok = store.update_registration(move.registration_id, advancement_patch(move))
                reason = "store rejected update"
            except Exception as e:
                ok = False
                reason = str(e) or type(e).__name__
            if ok:
                outcome.advanced += 1
                outcome.moves.append(move)
                continue
            logger.warning(
                f"Failed to advance registration {move.registration_id} "
                f"to stage {move.to_stage}: {reason}"
            )
            outcome.failed += 1
            outcome.failures.append(
                AdvancementFailure(
                    registration_id=move.registration_id,
                    player_name=move.player_name,
                    reason=reason,
                )
            )

        if outcome.failed:
            outcome.kind = "partial_failure"
            outcome.message = f"Advanced {outcome.advanced} player(s), {outcome.failed} failed"
        else:
            outcome.message = f"Advanced {outcome.advanced} player(s) to next stage(s)"
        logger.info(f"Tournament {tournament_id}: {outcome.message}")
        return outcome
