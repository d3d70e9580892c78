"""Process-wide keyed store of run states.

Entries are immutable ``RunState`` snapshots. Every write reads the current
snapshot, applies a patch and replaces the entry under a lock, so readers
never observe a half-applied update and never hold a mutable reference.
"""

import logging
import threading
from typing import Any

from sitesmith.exceptions import InternalInvariantViolation
from sitesmith.models import STATUS_RANK, BuildAttempt, RunPhase, RunState, RunStatus

logger = logging.getLogger(__name__)


class StoreError(InternalInvariantViolation):
    """Base exception for run registry misuse."""


class UnknownRunError(StoreError):
    """Raised when patching a run that was never registered."""


class DuplicateRunError(StoreError):
    """Raised when registering a run id twice."""


class InvalidTransitionError(StoreError):
    """Raised when a patch would move a run's status backwards or out of a terminal state."""


class RunRegistry:
    """Keyed run-state store with atomic replace-on-write updates."""

    def __init__(self) -> None:
        self._runs: dict[str, RunState] = {}
        self._lock = threading.Lock()

    def create(self, state: RunState) -> RunState:
        with self._lock:
            if state.run_id in self._runs:
                raise DuplicateRunError(f"Run already registered: {state.run_id}")
            self._runs[state.run_id] = state
        logger.debug("[run %s] registered (%s)", state.run_id, state.status.value)
        return state

    def get(self, run_id: str) -> RunState | None:
        with self._lock:
            return self._runs.get(run_id)

    def update(self, run_id: str, **patch: Any) -> RunState:
        """Apply ``patch`` to a run and return the new snapshot.

        Raises:
            UnknownRunError: If ``run_id`` is not registered.
            InvalidTransitionError: If the status would regress or leave a
                terminal state.
        """
        with self._lock:
            current = self._require(run_id)
            new_status = _coerce(patch)
            _check_transition(current, new_status, patch.get("phase"))
            updated = current.model_copy(update=patch)
            self._runs[run_id] = updated
        if new_status is not None and new_status != current.status:
            logger.info(
                "[run %s] status %s -> %s",
                run_id,
                current.status.value,
                new_status.value,
            )
        return updated

    def record_attempt(self, run_id: str, attempt: BuildAttempt, **patch: Any) -> RunState:
        """Append a sealed attempt (and apply ``patch``) in one atomic write."""
        with self._lock:
            current = self._require(run_id)
            new_status = _coerce(patch)
            _check_transition(current, new_status, patch.get("phase"))
            patch["attempts"] = current.attempts + (attempt,)
            updated = current.model_copy(update=patch)
            self._runs[run_id] = updated
        return updated

    def list_runs(self) -> list[RunState]:
        with self._lock:
            return list(self._runs.values())

    def _require(self, run_id: str) -> RunState:
        state = self._runs.get(run_id)
        if state is None:
            raise UnknownRunError(f"Unknown run: {run_id}")
        return state


def _check_transition(
    current: RunState,
    new_status: RunStatus | None,
    new_phase: RunPhase | None,
) -> None:
    if current.is_terminal and new_phase is not None and new_phase != current.phase:
        raise InvalidTransitionError(
            f"Run {current.run_id} is {current.status.value}; phase is frozen"
        )
    if new_status is None:
        return
    if current.is_terminal and new_status != current.status:
        raise InvalidTransitionError(
            f"Run {current.run_id} is {current.status.value}; cannot move to {new_status.value}"
        )
    if STATUS_RANK[new_status] < STATUS_RANK[current.status]:
        raise InvalidTransitionError(
            f"Run {current.run_id} cannot move back from "
            f"{current.status.value} to {new_status.value}"
        )


def _coerce(patch: dict[str, Any]) -> RunStatus | None:
    # model_copy skips validation, so enum fields are coerced here.
    if patch.get("phase") is not None:
        patch["phase"] = RunPhase(patch["phase"])
    if patch.get("status") is None:
        return None
    patch["status"] = RunStatus(patch["status"])
    return patch["status"]
