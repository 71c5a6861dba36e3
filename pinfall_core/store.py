"""Record store contract consumed by the engine, plus an in-memory store.

The engine only reads tournaments/registrations and writes per-registration
patches. Writes are independent; there is no cross-record transaction.
"""
from __future__ import annotations

import logging
from copy import deepcopy
from typing import Dict, Iterable, List, Protocol

from .types import RegistrationDoc, RegistrationPatch, StageScoreDoc, TournamentDoc

logger = logging.getLogger(__name__)


class RecordStore(Protocol):
    def list_registrations(self, tournament_id: str) -> List[RegistrationDoc]:
        ...

    def get_tournament(self, tournament_id: str) -> TournamentDoc | None:
        ...

    def update_registration(self, registration_id: str, partial: RegistrationPatch) -> bool:
        ...


def apply_registration_patch(doc: RegistrationDoc, partial: RegistrationPatch) -> RegistrationDoc:
    """Apply a patch to a registration document (returns a new dict).

    - currentStage: replaced
    - stageScores: each patch entry is matched by stageIndex; present keys
      overwrite, absent keys are kept; missing entries are created with
      empty scores and zero carryover.
    """
    updated: RegistrationDoc = deepcopy(doc)
    if "currentStage" in partial:
        updated["currentStage"] = partial["currentStage"]

    entries: List[StageScoreDoc] = list(updated.get("stageScores") or [])
    for patch in partial.get("stageScores") or []:
        stage_index = patch.get("stageIndex")
        if stage_index is None:
            raise ValueError("stageScores patch requires stageIndex")
        target = next((e for e in entries if e.get("stageIndex") == stage_index), None)
        if target is None:
            target = {"stageIndex": stage_index, "scores": [], "carryover": 0}
            entries.append(target)
        for key in ("scores", "carryover", "bonusPins", "handicap"):
            if key in patch:
                target[key] = deepcopy(patch[key])
    if partial.get("stageScores") is not None:
        updated["stageScores"] = entries
    return updated


class InMemoryRecordStore:
    """Dict-backed RecordStore. Reads and writes are deep copies."""

    def __init__(
        self,
        tournaments: Iterable[TournamentDoc] = (),
        registrations: Iterable[RegistrationDoc] = (),
    ) -> None:
        self._tournaments: Dict[str, TournamentDoc] = {}
        self._registrations: Dict[str, RegistrationDoc] = {}
        # Registration ids whose writes report failure (for exercising partial runs).
        self.failing_ids: set[str] = set()
        self.writes: List[tuple[str, RegistrationPatch]] = []
        for tournament in tournaments:
            self.add_tournament(tournament)
        for registration in registrations:
            self.add_registration(registration)

    def add_tournament(self, doc: TournamentDoc) -> None:
        self._tournaments[str(doc["id"])] = deepcopy(doc)

    def add_registration(self, doc: RegistrationDoc) -> None:
        self._registrations[str(doc["id"])] = deepcopy(doc)

    def get_registration(self, registration_id: str) -> RegistrationDoc | None:
        doc = self._registrations.get(registration_id)
        return deepcopy(doc) if doc is not None else None

    def get_tournament(self, tournament_id: str) -> TournamentDoc | None:
        doc = self._tournaments.get(tournament_id)
        return deepcopy(doc) if doc is not None else None

    def list_registrations(self, tournament_id: str) -> List[RegistrationDoc]:
        return [
            deepcopy(doc)
            for doc in self._registrations.values()
            if str(doc.get("tournamentId")) == tournament_id
        ]

    def update_registration(self, registration_id: str, partial: RegistrationPatch) -> bool:
        if registration_id in self.failing_ids:
            logger.warning(f"Injected write failure for registration {registration_id}")
            return False
        current = self._registrations.get(registration_id)
        if current is None:
            logger.warning(f"update_registration: unknown registration {registration_id}")
            return False
        if "currentStage" in partial:
            before = current.get("currentStage") or 0
            if partial["currentStage"] < before:
                logger.warning(
                    f"Refusing to move registration {registration_id} back from stage "
                    f"{before} to {partial['currentStage']}"
                )
                return False
        self._registrations[registration_id] = apply_registration_patch(current, partial)
        self.writes.append((registration_id, deepcopy(partial)))
        return True
