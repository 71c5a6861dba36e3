"""Recording game scores for one registration and stage."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Literal, Sequence, Tuple

from .format import ResolvedFormat, resolve_format
from .store import RecordStore
from .types import RegistrationPatch, StageScorePatch
from .validation import DEFAULT_CONFIG, ScoringConfig, sanitize_game_scores

logger = logging.getLogger(__name__)

RecordKind = Literal["recorded", "not_found", "rejected"]


@dataclass(frozen=True)
class RecordOutcome:
    ok: bool
    kind: RecordKind
    scores: tuple[int, ...] = ()
    message: str | None = None


def build_score_patch(
    fmt: ResolvedFormat,
    stage_index: int,
    raw_scores: Sequence[Any] | None,
    *,
    bonus_pins: Sequence[Any] | None = None,
    handicap: int | None = None,
    config: ScoringConfig | None = None,
) -> Tuple[RegistrationPatch, tuple[int, ...]]:
    """Build the patch that replaces a stage's recorded games.

    Raw slots beyond the stage's game count are ignored; blank, zero and
    invalid slots are dropped as not played. Carryover is left untouched.

    Raises:
        IndexError: If ``stage_index`` is not a configured stage
    """
    stage = fmt.stage(stage_index)
    scores = tuple(sanitize_game_scores(raw_scores, stage.games, config or DEFAULT_CONFIG))
    entry: StageScorePatch = {"stageIndex": stage_index, "scores": list(scores)}
    if bonus_pins is not None:
        entry["bonusPins"] = [
            int(b) for b in bonus_pins if isinstance(b, int) and not isinstance(b, bool) and b >= 0
        ]
    if handicap is not None:
        entry["handicap"] = max(int(handicap), 0)
    return {"stageScores": [entry]}, scores


def record_stage_scores(
    store: RecordStore,
    tournament_id: str,
    registration_id: str,
    stage_index: int,
    raw_scores: Sequence[Any] | None,
    *,
    bonus_pins: Sequence[Any] | None = None,
    handicap: int | None = None,
    config: ScoringConfig | None = None,
) -> RecordOutcome:
    """Write a player's games for one stage through the record store.

    Raises:
        LookupError: If the tournament does not exist
        IndexError: If ``stage_index`` is not a configured stage
    """
    config = config or DEFAULT_CONFIG
    tournament = store.get_tournament(tournament_id)
    if tournament is None:
        raise LookupError(f"tournament {tournament_id} not found")
    fmt = resolve_format(tournament, config)
    patch, scores = build_score_patch(
        fmt,
        stage_index,
        raw_scores,
        bonus_pins=bonus_pins,
        handicap=handicap,
        config=config,
    )

    known_ids = {str(doc.get("id")) for doc in store.list_registrations(tournament_id)}
    if registration_id not in known_ids:
        return RecordOutcome(
            ok=False,
            kind="not_found",
            message=f"registration {registration_id} not in tournament {tournament_id}",
        )

    if not store.update_registration(registration_id, patch):
        logger.warning(f"Failed to save stage {stage_index} scores for {registration_id}")
        return RecordOutcome(ok=False, kind="rejected", scores=scores, message="Failed to save scores")
    logger.debug(f"Saved stage {stage_index} scores {list(scores)} for {registration_id}")
    return RecordOutcome(ok=True, kind="recorded", scores=scores)
