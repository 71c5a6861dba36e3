"""Tournament format classification (staged vs. single-stage)."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Tuple

from .validation import (
    DEFAULT_CONFIG,
    ScoringConfig,
    Stage,
    Tournament,
    TournamentFormat,
    parse_tournament,
)


@dataclass(frozen=True)
class ResolvedFormat:
    """Effective format driving aggregation, ranking and advancement.

    For single-stage tournaments ``stages`` holds one synthetic stage whose
    ``games`` is the effective games-per-bowler, so every caller can treat
    stage 0 uniformly.
    """

    staged: bool
    stages: Tuple[Stage, ...]
    games_per_bowler: int

    @property
    def stage_count(self) -> int:
        return len(self.stages)

    @property
    def can_advance(self) -> bool:
        return self.staged and len(self.stages) > 1

    def stage(self, stage_index: int) -> Stage:
        """Return the stage at ``stage_index``.

        Raises:
            IndexError: If the index is outside the configured stages
        """
        if isinstance(stage_index, bool) or not isinstance(stage_index, int):
            raise IndexError(f"stage index must be an int, got {stage_index!r}")
        if stage_index < 0 or stage_index >= len(self.stages):
            raise IndexError(
                f"stage index {stage_index} out of range for {len(self.stages)} stage(s)"
            )
        return self.stages[stage_index]


def resolve_format(
    tournament: Tournament | TournamentFormat | dict[str, Any] | None,
    config: ScoringConfig | None = None,
) -> ResolvedFormat:
    """Classify a tournament format.

    Args:
        tournament: Tournament model, bare format, or raw tournament document
        config: scoring defaults (games-per-bowler fallback)

    Returns:
        ResolvedFormat; staged only when hasStages is set and at least one
        stage is configured.
    """
    config = config or DEFAULT_CONFIG
    if tournament is None:
        fmt = TournamentFormat()
    elif isinstance(tournament, TournamentFormat):
        fmt = tournament
    elif isinstance(tournament, Tournament):
        fmt = tournament.format
    else:
        fmt = parse_tournament(tournament, config).format

    games_per_bowler = fmt.games_per_bowler or config.default_games_per_bowler
    if fmt.has_stages and fmt.stages:
        return ResolvedFormat(
            staged=True,
            stages=tuple(fmt.stages),
            games_per_bowler=games_per_bowler,
        )
    single = Stage(name="", games=games_per_bowler)
    return ResolvedFormat(staged=False, stages=(single,), games_per_bowler=games_per_bowler)
