from __future__ import annotations

import threading

import pytest

from pinfall_core import (
    InMemoryRecordStore,
    Stage,
    advance_players,
    next_stage_carryover,
    plan_advancement,
)


def _tournament(stages, tournament_id="t1", has_stages=True):
    return {
        "id": tournament_id,
        "name": "Spring Classic",
        "format": {"hasStages": has_stages, "stages": stages, "gamesPerBowler": 3},
    }


def _two_stage(advancing=2, carry=True, pct=100):
    return _tournament(
        [
            {"name": "Qualifying", "games": 3, "advancingBowlers": advancing},
            {"name": "Final", "games": 1, "carryoverPinfall": carry, "carryoverPercentage": pct},
        ]
    )


def _reg(reg_id, scores, current_stage=0, tournament_id="t1", status="confirmed", extra=None):
    stage_scores = [{"stageIndex": 0, "scores": scores, "carryover": 0}]
    stage_scores.extend(extra or [])
    return {
        "id": reg_id,
        "tournamentId": tournament_id,
        "playerName": f"Player {reg_id}",
        "status": status,
        "currentStage": current_stage,
        "assignedSquads": [],
        "stageScores": stage_scores,
    }


def _field():
    return [
        _reg("p580", [200, 180, 200]),
        _reg("p650", [220, 215, 215]),
        _reg("p590", [200, 190, 200]),
        _reg("p600", [200, 200, 200]),
    ]


def _stage_entry(doc, stage_index):
    return next(e for e in doc["stageScores"] if e["stageIndex"] == stage_index)


def test_next_stage_carryover_rounds_half_up():
    half = Stage(name="Final", games=1, carryover_pinfall=True, carryover_percentage=50)
    assert next_stage_carryover(601, half) == 301
    full = Stage(name="Final", games=1, carryover_pinfall=True)
    assert next_stage_carryover(650, full) == 650
    none = Stage(name="Final", games=1, carryover_pinfall=False, carryover_percentage=50)
    assert next_stage_carryover(650, none) == 0
    zero = Stage(name="Final", games=1, carryover_pinfall=True, carryover_percentage=0)
    assert next_stage_carryover(650, zero) == 0


def test_two_stage_tournament_advances_top_two_with_carryover():
    store = InMemoryRecordStore([_two_stage()], _field())

    outcome = advance_players(store, "t1")

    assert outcome.kind == "advanced"
    assert outcome.advanced == 2
    assert outcome.failed == 0
    assert [m.registration_id for m in outcome.moves] == ["p650", "p600"]
    assert [m.carryover for m in outcome.moves] == [650, 600]

    p650 = store.get_registration("p650")
    assert p650["currentStage"] == 1
    assert _stage_entry(p650, 1)["carryover"] == 650
    assert _stage_entry(p650, 1)["scores"] == []
    assert _stage_entry(p650, 0)["scores"] == [220, 215, 215]
    assert _stage_entry(store.get_registration("p600"), 1)["carryover"] == 600
    assert store.get_registration("p590")["currentStage"] == 0
    assert store.get_registration("p580")["currentStage"] == 0


def test_second_run_without_new_scores_advances_nobody():
    store = InMemoryRecordStore([_two_stage()], _field())
    advance_players(store, "t1")
    writes_after_first = len(store.writes)

    again = advance_players(store, "t1")

    assert again.kind == "none_eligible"
    assert again.advanced == 0
    assert len(store.writes) == writes_after_first
    assert store.get_registration("p590")["currentStage"] == 0


def test_incomplete_player_is_never_selected():
    regs = _field() + [_reg("p600x2", [300, 300])]
    plan = plan_advancement(_two_stage(), regs)
    assert [m.registration_id for m in plan.moves] == ["p650", "p600"]


def test_fewer_completed_players_than_slots_advances_all_eligible():
    regs = [_reg("a", [200, 200, 200]), _reg("b", [150, 150])]
    plan = plan_advancement(_two_stage(advancing=4), regs)
    assert plan.applicable is True
    assert [m.registration_id for m in plan.moves] == ["a"]


def test_carryover_percentage_applies_to_next_stage():
    regs = [_reg("a", [200, 200, 201])]
    plan = plan_advancement(_two_stage(advancing=1, pct=50), regs)
    assert plan.moves[0].total == 601
    assert plan.moves[0].carryover == 301


def test_no_carryover_when_next_stage_disables_it():
    regs = [_reg("a", [200, 200, 200])]
    plan = plan_advancement(_two_stage(advancing=1, carry=False), regs)
    assert plan.moves[0].carryover == 0


def test_ties_at_the_cut_follow_input_order():
    regs = [_reg("late", [200, 200, 200]), _reg("early", [200, 200, 200])]
    plan = plan_advancement(_two_stage(advancing=1), regs)
    assert [m.registration_id for m in plan.moves] == ["late"]


def test_single_stage_tournament_is_not_applicable():
    store = InMemoryRecordStore(
        [_tournament([], has_stages=False)], [_reg("a", [200, 200, 200])]
    )
    outcome = advance_players(store, "t1")
    assert outcome.kind == "not_applicable"
    assert outcome.advanced == 0
    assert outcome.message
    assert store.writes == []


def test_one_stage_tournament_is_not_applicable():
    plan = plan_advancement(
        _tournament([{"name": "Only", "games": 3, "advancingBowlers": 4}]),
        [_reg("a", [200, 200, 200])],
    )
    assert plan.applicable is False


def test_nothing_complete_is_reported_separately_from_not_applicable():
    store = InMemoryRecordStore([_two_stage()], [_reg("a", [200, 200])])
    outcome = advance_players(store, "t1")
    assert outcome.kind == "none_eligible"
    assert outcome.message != advance_players(
        InMemoryRecordStore([_tournament([], has_stages=False)], []), "t1"
    ).message


def test_final_stage_without_advancing_count_is_skipped():
    tournament = _tournament(
        [
            {"name": "Qualifying", "games": 3},
            {"name": "Final", "games": 1, "carryoverPinfall": True},
        ]
    )
    plan = plan_advancement(tournament, _field())
    assert plan.applicable is True
    assert plan.moves == ()


def test_cancelled_registrations_do_not_advance():
    regs = [_reg("gone", [300, 300, 300], status="cancelled"), _reg("a", [150, 150, 150])]
    plan = plan_advancement(_two_stage(advancing=1), regs)
    assert [m.registration_id for m in plan.moves] == ["a"]


def test_three_stages_promote_one_stage_per_run():
    tournament = _tournament(
        [
            {"name": "Qualifying", "games": 3, "advancingBowlers": 2},
            {"name": "Semi", "games": 2, "advancingBowlers": 1, "carryoverPinfall": True, "carryoverPercentage": 50},
            {"name": "Final", "games": 1, "carryoverPinfall": True},
        ]
    )
    semi_done = _reg(
        "s1",
        [210, 210, 210],
        current_stage=1,
        extra=[{"stageIndex": 1, "scores": [250, 250], "carryover": 315}],
    )
    regs = [semi_done, _reg("q1", [200, 200, 200]), _reg("q2", [190, 190, 190]), _reg("q3", [100, 100, 100])]
    store = InMemoryRecordStore([tournament], regs)

    outcome = advance_players(store, "t1")

    # s1 already holds one qualifying slot, so only one more leaves stage 0.
    assert [(m.registration_id, m.to_stage) for m in outcome.moves] == [("q1", 1), ("s1", 2)]
    assert _stage_entry(store.get_registration("q1"), 1)["carryover"] == 300
    assert _stage_entry(store.get_registration("s1"), 2)["carryover"] == 815
    assert store.get_registration("q2")["currentStage"] == 0

    # q1 has no semi scores yet, so nothing more moves.
    assert advance_players(store, "t1").kind == "none_eligible"


def test_partial_failure_is_reported_and_retry_converges():
    store = InMemoryRecordStore([_two_stage()], _field())
    store.failing_ids = {"p650"}

    first = advance_players(store, "t1")

    assert first.kind == "partial_failure"
    assert first.advanced == 1
    assert first.failed == 1
    assert first.failures[0].registration_id == "p650"
    assert "1 failed" in first.message
    assert store.get_registration("p650")["currentStage"] == 0
    assert store.get_registration("p600")["currentStage"] == 1

    store.failing_ids = set()
    retry = advance_players(store, "t1")

    assert retry.kind == "advanced"
    assert [m.registration_id for m in retry.moves] == ["p650"]
    assert _stage_entry(store.get_registration("p650"), 1)["carryover"] == 650
    assert store.get_registration("p590")["currentStage"] == 0
    assert advance_players(store, "t1").advanced == 0


def test_store_exception_counts_as_failure():
    class _ExplodingStore(InMemoryRecordStore):
        def update_registration(self, registration_id, partial):
            if registration_id == "p600":
                raise RuntimeError("connection reset")
            return super().update_registration(registration_id, partial)

    store = _ExplodingStore([_two_stage()], _field())
    outcome = advance_players(store, "t1")
    assert outcome.kind == "partial_failure"
    assert outcome.failures[0].reason == "connection reset"
    assert store.get_registration("p650")["currentStage"] == 1


def test_unknown_tournament_raises():
    with pytest.raises(LookupError):
        advance_players(InMemoryRecordStore(), "missing")


def test_concurrent_runs_share_one_lock_per_tournament():
    from pinfall_core import advancement

    store = InMemoryRecordStore([_two_stage()], _field())
    outcomes = []
    threads = [
        threading.Thread(target=lambda: outcomes.append(advance_players(store, "t1")))
        for _ in range(4)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sum(o.advanced for o in outcomes) == 2
    assert sorted(o.kind for o in outcomes) == ["advanced", "none_eligible", "none_eligible", "none_eligible"]
    lock = advancement._tournament_locks["t1"]
    advance_players(store, "t1")
    assert advancement._tournament_locks["t1"] is lock
