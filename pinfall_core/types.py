"""Type definitions for tournament records exchanged with the record store."""
from __future__ import annotations

from typing import Any, List, Optional, TypedDict


class StageDoc(TypedDict, total=False):
    """A stage entry in ``format.stages``. Index 0 is qualifying."""
    name: str
    games: int
    advancingBowlers: Optional[int]  # None/0 = no automatic advancement
    carryoverPinfall: bool
    carryoverPercentage: Optional[float]  # 0-100, defaults to 100


class FormatDoc(TypedDict, total=False):
    hasStages: bool
    stages: List[StageDoc]
    gamesPerBowler: int  # Only used when hasStages is false


class SquadDoc(TypedDict, total=False):
    id: str
    name: str
    capacity: Optional[int]
    date: Optional[str]
    time: Optional[str]


class TournamentDoc(TypedDict, total=False):
    """
    TypedDict representing a tournament as returned by ``get_tournament``.

    All fields are optional (total=False): older records may lack a format.
    """
    id: str
    name: str
    format: FormatDoc
    squads: List[SquadDoc]


class StageScoreDoc(TypedDict, total=False):
    stageIndex: int
    scores: List[Any]  # Raw values; only 1-300 count as played
    carryover: int
    bonusPins: List[int]
    handicap: int  # Already-computed pins per game


class RegistrationDoc(TypedDict, total=False):
    """A registration as returned by ``list_registrations``."""
    id: str
    tournamentId: str
    playerName: str
    status: str  # 'pending' | 'confirmed' | 'cancelled' | 'waitlist'
    currentStage: int
    assignedSquads: List[str]
    stageScores: List[StageScoreDoc]


class StageScorePatch(TypedDict, total=False):
    """
    Partial update of one stage entry, matched by ``stageIndex``.

    Keys that are absent are left untouched on the stored entry.
    """
    stageIndex: int
    scores: List[int]
    carryover: int
    bonusPins: List[int]
    handicap: int


class RegistrationPatch(TypedDict, total=False):
    """Partial update passed to ``update_registration``."""
    currentStage: int
    stageScores: List[StageScorePatch]


# Type aliases mirroring the store contract names
TournamentDict = TournamentDoc
RegistrationDict = RegistrationDoc
