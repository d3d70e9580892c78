"""Tests for the run registry."""

import threading

import pytest

from sitesmith.models import AttemptOutcome, BuildAttempt, RunPhase, RunState, RunStatus
from sitesmith.store import (
    DuplicateRunError,
    InvalidTransitionError,
    RunRegistry,
    UnknownRunError,
)


def _attempt(run_id: str, number: int, outcome=AttemptOutcome.FAILURE) -> BuildAttempt:
    return BuildAttempt(run_id=run_id, attempt_number=number, outcome=outcome, error_excerpt="boom")


class TestRunRegistry:
    def test_create_and_get(self, registry):
        registry.create(RunState(run_id="r1", prompt="todo app"))

        state = registry.get("r1")

        assert state.status == RunStatus.PENDING
        assert state.phase == RunPhase.PENDING
        assert state.prompt == "todo app"

    def test_get_unknown_returns_none(self, registry):
        assert registry.get("missing") is None

    def test_duplicate_create_rejected(self, registry):
        registry.create(RunState(run_id="r1"))

        with pytest.raises(DuplicateRunError):
            registry.create(RunState(run_id="r1"))

    def test_update_unknown_rejected(self, registry):
        with pytest.raises(UnknownRunError):
            registry.update("nope", status=RunStatus.BUILDING)

    def test_update_replaces_snapshot(self, registry):
        registry.create(RunState(run_id="r1"))
        before = registry.get("r1")

        after = registry.update("r1", status="building", phase="building")

        assert after.status == RunStatus.BUILDING
        assert after.phase == RunPhase.BUILDING
        assert before.status == RunStatus.PENDING
        assert registry.get("r1") is after

    def test_status_cannot_regress(self, registry):
        registry.create(RunState(run_id="r1"))
        registry.update("r1", status=RunStatus.BUILDING)

        with pytest.raises(InvalidTransitionError):
            registry.update("r1", status=RunStatus.PENDING)

    def test_terminal_status_is_frozen(self, registry):
        registry.create(RunState(run_id="r1"))
        registry.update("r1", status=RunStatus.READY, phase=RunPhase.READY)

        with pytest.raises(InvalidTransitionError):
            registry.update("r1", status=RunStatus.FAILED)
        with pytest.raises(InvalidTransitionError):
            registry.update("r1", phase=RunPhase.BUILDING)

    def test_terminal_run_accepts_metadata(self, registry):
        registry.create(RunState(run_id="r1"))
        registry.update("r1", status=RunStatus.READY, phase=RunPhase.READY)

        state = registry.update("r1", deploy_url="https://r1.vercel.app")

        assert state.deploy_url == "https://r1.vercel.app"
        assert state.status == RunStatus.READY

    def test_phase_may_move_within_building(self, registry):
        registry.create(RunState(run_id="r1"))
        registry.update("r1", status=RunStatus.BUILDING, phase=RunPhase.BUILDING)

        state = registry.update("r1", phase=RunPhase.GENERATING)

        assert state.phase == RunPhase.GENERATING
        assert state.status == RunStatus.BUILDING

    def test_record_attempt_appends_with_patch(self, registry):
        registry.create(RunState(run_id="r1"))
        registry.record_attempt("r1", _attempt("r1", 1))

        state = registry.record_attempt(
            "r1",
            _attempt("r1", 2, AttemptOutcome.SUCCESS),
            status=RunStatus.READY,
            phase=RunPhase.READY,
        )

        assert [a.attempt_number for a in state.attempts] == [1, 2]
        assert state.status == RunStatus.READY

    def test_record_attempt_rejected_after_terminal(self, registry):
        registry.create(RunState(run_id="r1"))
        registry.update("r1", status=RunStatus.FAILED, phase=RunPhase.FAILED)

        with pytest.raises(InvalidTransitionError):
            registry.record_attempt("r1", _attempt("r1", 1), status=RunStatus.READY)

    def test_concurrent_attempts_are_all_kept(self):
        registry = RunRegistry()
        registry.create(RunState(run_id="r1"))

        threads = [
            threading.Thread(target=registry.record_attempt, args=("r1", _attempt("r1", n)))
            for n in range(1, 21)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(registry.get("r1").attempts) == 20

    def test_list_runs(self, registry):
        registry.create(RunState(run_id="a"))
        registry.create(RunState(run_id="b"))

        assert {run.run_id for run in registry.list_runs()} == {"a", "b"}
