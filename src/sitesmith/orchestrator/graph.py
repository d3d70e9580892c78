"""LangGraph orchestrator for the generate/commit/build loop.

Wires SiteGenerator, BlobTreeCommitter and BuildRunner into a StateGraph
with bounded retry. Every phase change is written to the RunRegistry so
status readers never have to wait on the loop.
"""

import logging
import time
from typing import Any, Callable

from langgraph.graph import END, START, StateGraph

from sitesmith.agents.build_runner import BuildRunner
from sitesmith.agents.exceptions import BuildError, GenerationFailure
from sitesmith.agents.site_generator import GenerationContext, SiteGenerator
from sitesmith.exceptions import InputValidationError
from sitesmith.github.committer import BlobTreeCommitter
from sitesmith.models import (
    AttemptOutcome,
    BuildAttempt,
    RunPhase,
    RunState,
    RunStatus,
    normalize_file_set,
)
from sitesmith.orchestrator.exceptions import GraphBuildError
from sitesmith.orchestrator.recovery import (
    commit_message,
    route_after_build,
    route_after_commit,
    route_after_generate,
)
from sitesmith.orchestrator.state import LoopState
from sitesmith.store.run_registry import RunRegistry
from sitesmith.utils.error_extractor import MAX_EXCERPT_CHARS, extract_build_error

logger = logging.getLogger(__name__)

# generate, commit, build and retry run at most once per attempt
NODES_PER_ATTEMPT = 4
RECURSION_HEADROOM = 6


def recursion_limit_for(max_attempts: int) -> int:
    return max_attempts * NODES_PER_ATTEMPT + RECURSION_HEADROOM


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def make_generate_node(
    generator: SiteGenerator,
    registry: RunRegistry,
) -> Callable[[LoopState], dict]:
    """Factory: returns a node closure that runs one generation attempt.

    The first attempt gets the bare prompt. Later attempts get the previous
    file set and the last build error excerpt as corrective context.

    A GenerationFailure, or output that normalises to no usable files,
    consumes the attempt and is recorded as a failed ``generate`` attempt.
    Any other error is fatal for the run.
    """

    def generate_node(state: LoopState) -> dict:
        run_id = state["run_id"]
        attempt_number = state["attempt_number"] + 1
        registry.update(run_id, phase=RunPhase.GENERATING)

        context = None
        if state["file_set"] is not None and state["error_excerpt"]:
            context = GenerationContext(
                previous_files=state["file_set"],
                error_excerpt=state["error_excerpt"],
            )
        logger.info(
            "[run %s] attempt %d/%d: generating%s",
            run_id,
            attempt_number,
            state["max_attempts"],
            " with error context" if context else "",
        )

        started = time.monotonic()
        try:
            file_set = generator.generate(
                state["prompt"],
                context=context,
                skill=state["skill"],
            )
            file_set = normalize_file_set(file_set)
        except (GenerationFailure, InputValidationError) as exc:
            reason = str(exc)[:MAX_EXCERPT_CHARS]
            logger.warning("[run %s] attempt %d: generation failed: %s", run_id, attempt_number, reason)
            return {
                "attempt_number": attempt_number,
                "pending_attempt": BuildAttempt(
                    run_id=run_id,
                    attempt_number=attempt_number,
                    outcome=AttemptOutcome.FAILURE,
                    error_excerpt=reason,
                    duration_ms=_elapsed_ms(started),
                    stage="generate",
                ),
                "build_succeeded": False,
                "last_error": f"Generation failed: {reason}",
                "errors": [f"generate_node attempt {attempt_number}: {reason}"],
            }
        except Exception as exc:
            logger.error("[run %s] generation aborted: %s", run_id, exc)
            return {
                "attempt_number": attempt_number,
                "fatal": True,
                "last_error": f"Generation failed: {exc}",
                "errors": [f"generate_node error: {exc}"],
            }

        logger.info("[run %s] attempt %d: generated %d files", run_id, attempt_number, len(file_set))
        return {
            "attempt_number": attempt_number,
            "file_set": file_set,
            "pending_attempt": None,
            "build_succeeded": False,
            "last_error": None,
        }

    return generate_node


def make_commit_node(
    committer: BlobTreeCommitter | None,
    registry: RunRegistry,
) -> Callable[[LoopState], dict]:
    """Factory: returns a node closure that commits the current file set.

    Commit failures reach this node only after the committer's own ref
    fallback and rebase attempts, so they always end the run.
    """

    def commit_node(state: LoopState) -> dict:
        run_id = state["run_id"]
        registry.update(run_id, phase=RunPhase.COMMITTING)
        try:
            if committer is None or not state["owner"] or not state["repo"]:
                raise GraphBuildError("Commit requested but no repository is configured")
            result = committer.commit(
                owner=state["owner"],
                repo=state["repo"],
                branch=state["branch"],
                file_set=state["file_set"],
                message=commit_message(state),
            )
        except Exception as exc:
            logger.error("[run %s] commit failed: %s", run_id, exc)
            return {
                "fatal": True,
                "last_error": f"Commit failed: {exc}",
                "errors": [f"commit_node error: {exc}"],
            }

        registry.update(run_id, commit_id=result.commit_id)
        logger.info(
            "[run %s] committed %s (%s %s)",
            run_id,
            result.commit_id,
            state["branch"],
            result.branch_advanced,
        )
        return {"commit_id": result.commit_id}

    return commit_node


def make_build_node(
    runner: BuildRunner,
    registry: RunRegistry,
) -> Callable[[LoopState], dict]:
    """Factory: returns a node closure that builds the current file set.

    A BuildError becomes a failed attempt carrying the extracted excerpt,
    which the next generation receives as context.
    """

    def build_node(state: LoopState) -> dict:
        run_id = state["run_id"]
        attempt_number = state["attempt_number"]
        registry.update(run_id, status=RunStatus.BUILDING, phase=RunPhase.BUILDING)

        started = time.monotonic()
        try:
            outcome = runner.build(run_id, state["file_set"], attempt_number=attempt_number)
        except BuildError as exc:
            excerpt = extract_build_error(exc.raw_output)
            logger.warning("[run %s] attempt %d: build failed: %s", run_id, attempt_number, exc)
            return {
                "pending_attempt": BuildAttempt(
                    run_id=run_id,
                    attempt_number=attempt_number,
                    work_dir=exc.work_dir,
                    outcome=AttemptOutcome.FAILURE,
                    error_excerpt=excerpt,
                    duration_ms=_elapsed_ms(started),
                ),
                "build_succeeded": False,
                "error_excerpt": excerpt,
                "last_error": excerpt,
                "errors": [f"build_node attempt {attempt_number}: {exc}"],
            }
        except Exception as exc:
            logger.error("[run %s] build aborted: %s", run_id, exc)
            return {
                "fatal": True,
                "last_error": f"Build failed: {exc}",
                "errors": [f"build_node error: {exc}"],
            }

        return {
            "pending_attempt": BuildAttempt(
                run_id=run_id,
                attempt_number=attempt_number,
                work_dir=outcome.work_dir,
                outcome=AttemptOutcome.SUCCESS,
                duration_ms=outcome.duration_ms,
            ),
            "build_succeeded": True,
            "artifact_path": outcome.artifact_path,
            "error_excerpt": None,
            "last_error": None,
        }

    return build_node


def make_retry_node(registry: RunRegistry) -> Callable[[LoopState], dict]:
    """Factory: returns a node closure that seals a failed attempt before regenerating."""

    def retry_node(state: LoopState) -> dict:
        attempt = state["pending_attempt"]
        if attempt is not None:
            registry.record_attempt(state["run_id"], attempt)
        logger.info(
            "[run %s] retrying (%d/%d attempts used)",
            state["run_id"],
            state["attempt_number"],
            state["max_attempts"],
        )
        return {"pending_attempt": None}

    return retry_node


def _finish(registry: RunRegistry, state: LoopState, **patch: Any) -> RunState:
    # Sealing the last attempt and setting the terminal status is one write.
    attempt = state["pending_attempt"]
    if attempt is not None:
        return registry.record_attempt(state["run_id"], attempt, **patch)
    return registry.update(state["run_id"], **patch)


def make_ready_node(registry: RunRegistry) -> Callable[[LoopState], dict]:
    def ready_node(state: LoopState) -> dict:
        _finish(
            registry,
            state,
            status=RunStatus.READY,
            phase=RunPhase.READY,
            artifact_path=state["artifact_path"],
            build_error=None,
        )
        logger.info("[run %s] ready after %d attempt(s)", state["run_id"], state["attempt_number"])
        return {"pending_attempt": None}

    return ready_node


def make_failed_node(registry: RunRegistry) -> Callable[[LoopState], dict]:
    def failed_node(state: LoopState) -> dict:
        error = state["last_error"] or "Run failed"
        _finish(
            registry,
            state,
            status=RunStatus.FAILED,
            phase=RunPhase.FAILED,
            build_error=error,
        )
        summary = (
            f"FAILED: run {state['run_id']} after "
            f"{state['attempt_number']}/{state['max_attempts']} attempts"
        )
        logger.error("[run %s] failed: %s", state["run_id"], error.splitlines()[0] if error else "")
        return {"pending_attempt": None, "errors": [summary]}

    return failed_node


def build_graph(
    generator: SiteGenerator,
    runner: BuildRunner,
    registry: RunRegistry,
    committer: BlobTreeCommitter | None = None,
):
    """Build and compile the generate/fix StateGraph.

    Edge topology:
      START -> generate_node
      generate_node -> conditional(route_after_generate) -> {commit_node, build_node, retry_node, failed_node}
      commit_node -> conditional(route_after_commit) -> {build_node, ready_node, failed_node}
      build_node -> conditional(route_after_build) -> {commit_node, ready_node, retry_node, failed_node}
      retry_node -> generate_node
      ready_node -> END
      failed_node -> END

    Args:
        generator: Produces file sets from the prompt (and error context).
        runner: Builds file sets into static artifacts.
        registry: Run registry updated at every phase change.
        committer: Commits file sets; required unless commits are disabled.

    Returns:
        CompiledStateGraph ready to invoke with a LoopState.

    Raises:
        GraphBuildError: If graph construction fails.
    """
    try:
        graph = StateGraph(LoopState)

        graph.add_node("generate_node", make_generate_node(generator, registry))
        graph.add_node("commit_node", make_commit_node(committer, registry))
        graph.add_node("build_node", make_build_node(runner, registry))
        graph.add_node("retry_node", make_retry_node(registry))
        graph.add_node("ready_node", make_ready_node(registry))
        graph.add_node("failed_node", make_failed_node(registry))

        graph.add_edge(START, "generate_node")

        graph.add_conditional_edges(
            "generate_node",
            route_after_generate,
            {
                "commit": "commit_node",
                "build": "build_node",
                "retry": "retry_node",
                "failed": "failed_node",
            },
        )
        graph.add_conditional_edges(
            "commit_node",
            route_after_commit,
            {
                "build": "build_node",
                "ready": "ready_node",
                "failed": "failed_node",
            },
        )
        graph.add_conditional_edges(
            "build_node",
            route_after_build,
            {
                "commit": "commit_node",
                "ready": "ready_node",
                "retry": "retry_node",
                "failed": "failed_node",
            },
        )

        graph.add_edge("retry_node", "generate_node")
        graph.add_edge("ready_node", END)
        graph.add_edge("failed_node", END)

        return graph.compile()

    except Exception as exc:
        raise GraphBuildError(f"Failed to build orchestrator graph: {exc}") from exc


def run_loop(graph: Any, state: LoopState) -> LoopState:
    """Invoke a compiled loop graph with a recursion limit sized to its attempt budget."""
    return graph.invoke(
        state,
        config={"recursion_limit": recursion_limit_for(state["max_attempts"])},
    )
