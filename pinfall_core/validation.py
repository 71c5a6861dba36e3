"""
Record parsing and score sanitization using Pydantic v2
Turns raw store documents into typed tournament/registration models
"""

import logging
import math
from typing import Any, List, Literal, Optional, Self, Sequence

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)

logger = logging.getLogger(__name__)

TieBreak = Literal["input_order", "scratch_then_name"]

ACTIVE_STATUSES = frozenset({"pending", "confirmed"})


class ScoringConfig(BaseModel):
    """Engine-wide scoring knobs. Passed in by the host; never read from env."""

    max_game_score: int = Field(300, ge=1, description="Highest valid single game")
    default_games_per_bowler: int = Field(
        3, ge=1, description="Games for single-stage tournaments without gamesPerBowler"
    )
    default_carryover_percentage: float = Field(100.0, ge=0.0, le=100.0)
    podium_places: int = Field(3, ge=1)
    # When off, a 0 entry means "not played" and cannot be told apart from a blank.
    allow_zero_games: bool = False
    tie_break: TieBreak = "input_order"

    model_config = ConfigDict(frozen=True)


DEFAULT_CONFIG = ScoringConfig()


def _config_from(info: ValidationInfo | None) -> ScoringConfig:
    context = getattr(info, "context", None) or {}
    config = context.get("config") if isinstance(context, dict) else None
    return config if isinstance(config, ScoringConfig) else DEFAULT_CONFIG


# ==================== SCORE SANITIZATION ====================


def parse_game_score(value: Any, config: ScoringConfig | None = None) -> int | None:
    """Parse one raw game slot.

    Returns the pinfall as int, or None when the slot counts as not played.

    Examples:
        - 212 → 212
        - " 180 " → 180
        - "" / None / "abc" → None
        - 0 → None (unless allow_zero_games)
        - 301 / -5 → None
    """
    config = config or DEFAULT_CONFIG
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            return None
        parsed = int(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return None
        try:
            parsed = int(stripped, 10)
        except ValueError:
            logger.debug(f"Dropping non-numeric game score {value!r}")
            return None
    else:
        return None

    floor = 0 if config.allow_zero_games else 1
    if parsed < floor or parsed > config.max_game_score:
        logger.debug(f"Dropping out-of-range game score {parsed}")
        return None
    return parsed


def sanitize_game_scores(
    values: Sequence[Any] | None,
    games: int | None = None,
    config: ScoringConfig | None = None,
) -> List[int]:
    """Keep the played games from a list of raw slots, in slot order.

    Args:
        values: raw slot values (ints, numeric strings, blanks, None)
        games: number of slots the stage has; extra slots are ignored
        config: scoring limits (defaults to DEFAULT_CONFIG)
    """
    if not values:
        return []
    if not isinstance(values, (list, tuple)):
        logger.warning(f"Ignoring non-list scores payload: {type(values).__name__}")
        return []
    slots = list(values)
    if games is not None:
        slots = slots[: max(games, 0)]
    recorded: List[int] = []
    for raw in slots:
        parsed = parse_game_score(raw, config)
        if parsed is not None:
            recorded.append(parsed)
    return recorded


def _coerce_non_negative_int(value: Any, default: int = 0) -> int:
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            return default
        value = int(value)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return default
        try:
            value = int(stripped, 10)
        except ValueError:
            return default
    if not isinstance(value, int):
        return default
    return value if value >= 0 else default


def _coerce_id(value: Any) -> Any:
    # Store ids may be ObjectId-like; normalize to str.
    if value is None or isinstance(value, str):
        return value
    return str(value)


# ==================== RECORD MODELS ====================


class Stage(BaseModel):
    """One element of ``format.stages``."""

    name: str = ""
    games: int = Field(..., ge=1, description="Games required to complete the stage")
    advancing_bowlers: Optional[int] = Field(
        None, ge=0, alias="advancingBowlers", description="Top N advancing; 0/None = none"
    )
    carryover_pinfall: bool = Field(False, alias="carryoverPinfall")
    carryover_percentage: float = Field(
        100.0, ge=0.0, le=100.0, alias="carryoverPercentage"
    )

    @field_validator("carryover_percentage", mode="before")
    @classmethod
    def default_percentage(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None:
            return _config_from(info).default_carryover_percentage
        return v

    @property
    def advances(self) -> bool:
        return bool(self.advancing_bowlers and self.advancing_bowlers > 0)

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class TournamentFormat(BaseModel):
    has_stages: bool = Field(False, alias="hasStages")
    stages: List[Stage] = Field(default_factory=list)
    games_per_bowler: Optional[int] = Field(None, alias="gamesPerBowler")

    @field_validator("games_per_bowler", mode="before")
    @classmethod
    def blank_games_per_bowler(cls, v: Any) -> Any:
        # 0/blank means unset; the resolver applies the default.
        if v in (None, "", 0):
            return None
        return v

    @field_validator("games_per_bowler")
    @classmethod
    def positive_games_per_bowler(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError("gamesPerBowler must be positive")
        return v

    @model_validator(mode="after")
    def warn_on_empty_stages(self) -> Self:
        if self.has_stages and not self.stages:
            logger.warning("Format declares hasStages but no stages; treating as single-stage")
        return self

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class Squad(BaseModel):
    id: str = Field(..., validation_alias=AliasChoices("id", "_id"))
    name: str = ""
    capacity: Optional[int] = Field(None, ge=0)
    date: Optional[str] = None
    time: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def normalize_id(cls, v: Any) -> Any:
        return _coerce_id(v)

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class Tournament(BaseModel):
    id: str = Field(..., validation_alias=AliasChoices("id", "_id"))
    name: str = ""
    format: TournamentFormat = Field(default_factory=TournamentFormat)
    squads: List[Squad] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def normalize_id(cls, v: Any) -> Any:
        return _coerce_id(v)

    @field_validator("format", mode="before")
    @classmethod
    def missing_format(cls, v: Any) -> Any:
        return {} if v is None else v

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class StageScoreEntry(BaseModel):
    """Scores one registration recorded for one stage."""

    stage_index: int = Field(..., ge=0, alias="stageIndex")
    scores: List[int] = Field(default_factory=list)
    carryover: int = Field(0, ge=0)
    bonus_pins: List[int] = Field(default_factory=list, alias="bonusPins")
    handicap: int = Field(0, ge=0, description="Already-computed handicap per game")

    @field_validator("scores", mode="before")
    @classmethod
    def drop_unplayed(cls, v: Any, info: ValidationInfo) -> List[int]:
        if v is None:
            return []
        if not isinstance(v, (list, tuple)):
            logger.warning(f"Ignoring non-list scores payload: {type(v).__name__}")
            return []
        return sanitize_game_scores(v, config=_config_from(info))

    @field_validator("carryover", "handicap", mode="before")
    @classmethod
    def coerce_pins(cls, v: Any) -> int:
        return _coerce_non_negative_int(v)

    @field_validator("bonus_pins", mode="before")
    @classmethod
    def coerce_bonus(cls, v: Any) -> List[int]:
        if not isinstance(v, (list, tuple)):
            return []
        return [_coerce_non_negative_int(b) for b in v]

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class Registration(BaseModel):
    id: str = Field(..., validation_alias=AliasChoices("id", "_id"))
    player_name: str = Field("", alias="playerName")
    status: str = "pending"
    current_stage: int = Field(0, ge=0, alias="currentStage")
    assigned_squads: List[str] = Field(default_factory=list, alias="assignedSquads")
    stage_scores: List[StageScoreEntry] = Field(default_factory=list, alias="stageScores")

    @field_validator("id", mode="before")
    @classmethod
    def normalize_id(cls, v: Any) -> Any:
        return _coerce_id(v)

    @field_validator("player_name", mode="before")
    @classmethod
    def strip_name(cls, v: Any) -> str:
        return v.strip() if isinstance(v, str) else ""

    @field_validator("current_stage", mode="before")
    @classmethod
    def default_stage(cls, v: Any) -> Any:
        return 0 if v is None else v

    @field_validator("assigned_squads", mode="before")
    @classmethod
    def normalize_squads(cls, v: Any) -> List[str]:
        if not isinstance(v, (list, tuple, set)):
            return []
        return [str(s) for s in v if s not in (None, "")]

    @model_validator(mode="after")
    def unique_stage_entries(self) -> Self:
        seen = set()
        for entry in self.stage_scores:
            if entry.stage_index in seen:
                raise ValueError(
                    f"registration {self.id} has duplicate stageScores for stage {entry.stage_index}"
                )
            seen.add(entry.stage_index)
        return self

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def entry_for(self, stage_index: int) -> StageScoreEntry | None:
        for entry in self.stage_scores:
            if entry.stage_index == stage_index:
                return entry
        return None

    model_config = ConfigDict(populate_by_name=True, extra="allow")


# ==================== PARSING ====================


def parse_tournament(doc: Any, config: ScoringConfig | None = None) -> Tournament:
    """
    Validate a tournament document.

    Raises:
        ValueError: If the document is malformed
    """
    if isinstance(doc, Tournament):
        return doc
    try:
        return Tournament.model_validate(doc, context={"config": config or DEFAULT_CONFIG})
    except Exception as e:
        logger.warning(f"Tournament validation failed: {e}")
        raise ValueError(f"Invalid tournament: {str(e)}")


def parse_registration(doc: Any, config: ScoringConfig | None = None) -> Registration:
    """
    Validate a registration document.

    Raises:
        ValueError: If the document is malformed
    """
    if isinstance(doc, Registration):
        return doc
    try:
        return Registration.model_validate(doc, context={"config": config or DEFAULT_CONFIG})
    except Exception as e:
        logger.warning(f"Registration validation failed: {e}")
        raise ValueError(f"Invalid registration: {str(e)}")


def parse_registrations(
    docs: Sequence[Any] | None, config: ScoringConfig | None = None
) -> List[Registration]:
    """Validate a batch of registrations, skipping (and logging) malformed ones."""
    parsed: List[Registration] = []
    for doc in docs or []:
        try:
            parsed.append(parse_registration(doc, config))
        except ValueError:
            continue
    return parsed


# ==================== EXPORT ====================

__all__ = [
    "ACTIVE_STATUSES",
    "DEFAULT_CONFIG",
    "Registration",
    "ScoringConfig",
    "Squad",
    "Stage",
    "StageScoreEntry",
    "TieBreak",
    "Tournament",
    "TournamentFormat",
    "parse_game_score",
    "parse_registration",
    "parse_registrations",
    "parse_tournament",
    "sanitize_game_scores",
]
