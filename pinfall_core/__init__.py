from .advancement import (
    AdvancementFailure,
    AdvancementMove,
    AdvancementOutcome,
    AdvancementPlan,
    advance_players,
    advancement_patch,
    next_stage_carryover,
    plan_advancement,
)
from .aggregation import (
    StageTotals,
    aggregate_entry,
    aggregate_registration,
    aggregate_stage,
    completed_players,
    game_average,
    is_stage_complete,
    round_half_up,
)
from .format import ResolvedFormat, resolve_format
from .leaderboard import LeaderboardRow, rank_players
from .recording import RecordOutcome, build_score_patch, record_stage_scores
from .results import (
    SquadGroup,
    StageResults,
    TournamentResults,
    group_by_squad,
    stage_leaderboard,
    tournament_results,
)
from .store import InMemoryRecordStore, RecordStore, apply_registration_patch
from .types import RegistrationDoc, RegistrationPatch, TournamentDoc
from .validation import (
    DEFAULT_CONFIG,
    Registration,
    ScoringConfig,
    Squad,
    Stage,
    StageScoreEntry,
    Tournament,
    TournamentFormat,
    parse_game_score,
    parse_registration,
    parse_registrations,
    parse_tournament,
    sanitize_game_scores,
)

__all__ = [
    "AdvancementFailure",
    "AdvancementMove",
    "AdvancementOutcome",
    "AdvancementPlan",
    "advance_players",
    "advancement_patch",
    "next_stage_carryover",
    "plan_advancement",
    "StageTotals",
    "aggregate_entry",
    "aggregate_registration",
    "aggregate_stage",
    "completed_players",
    "game_average",
    "is_stage_complete",
    "round_half_up",
    "ResolvedFormat",
    "resolve_format",
    "LeaderboardRow",
    "rank_players",
    "RecordOutcome",
    "build_score_patch",
    "record_stage_scores",
    "SquadGroup",
    "StageResults",
    "TournamentResults",
    "group_by_squad",
    "stage_leaderboard",
    "tournament_results",
    "InMemoryRecordStore",
    "RecordStore",
    "apply_registration_patch",
    "RegistrationDoc",
    "RegistrationPatch",
    "TournamentDoc",
    "DEFAULT_CONFIG",
    "Registration",
    "ScoringConfig",
    "Squad",
    "Stage",
    "StageScoreEntry",
    "Tournament",
    "TournamentFormat",
    "parse_game_score",
    "parse_registration",
    "parse_registrations",
    "parse_tournament",
    "sanitize_game_scores",
]
