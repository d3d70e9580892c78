"""Run service: the three operations exposed to the outside world.

``start_run`` registers a run and hands it to a worker, ``get_run_status``
reads the registry without blocking, and ``apply_changes`` commits follow-up
edits to a run's repository one operation at a time.
"""

import logging
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import contextmanager
from typing import Iterator, Sequence

from sitesmith.agents.build_runner import BuildRunner
from sitesmith.agents.site_generator import SiteGenerator
from sitesmith.config import ServiceConfig
from sitesmith.deploy.vercel import DeploymentError, VercelDeployer
from sitesmith.exceptions import InputValidationError, SitesmithError
from sitesmith.github.client import GitHubClient
from sitesmith.github.committer import BlobTreeCommitter
from sitesmith.models import (
    ChangeOperation,
    ChangeResult,
    CommitMode,
    FileEntry,
    RunOptions,
    RunPhase,
    RunState,
    RunStatus,
    UpsertOperation,
    normalize_path,
)
from sitesmith.orchestrator.graph import build_graph, run_loop
from sitesmith.orchestrator.state import DEFAULT_MAX_ATTEMPTS, make_initial_state
from sitesmith.service.exceptions import RunNotCommittableError, RunNotFoundError
from sitesmith.service.naming import DEFAULT_REPO_PREFIX, generate_repo_name, sanitize_repo_name
from sitesmith.skills import get_skill
from sitesmith.store.run_registry import RunRegistry

logger = logging.getLogger(__name__)

DEFAULT_WORKERS = 4


class RunService:
    """Coordinates repository setup, the generate/fix loop and follow-up changes."""

    def __init__(
        self,
        registry: RunRegistry,
        generator: SiteGenerator,
        runner: BuildRunner,
        github: GitHubClient | None = None,
        deployer: VercelDeployer | None = None,
        owner: str | None = None,
        org: str | None = None,
        repo_prefix: str = DEFAULT_REPO_PREFIX,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        commit_mode: CommitMode = CommitMode.BEFORE_BUILD,
        max_workers: int = DEFAULT_WORKERS,
    ) -> None:
        """Initialize the service.

        Args:
            registry: Run registry shared with the build runner.
            generator: Site generator used by the loop.
            runner: Build runner used by the loop.
            github: GitHub client; required unless commits are disabled.
            deployer: Optional Vercel deployer run after a ready build.
            owner: Repository owner login.
            org: Organisation to create repositories under, if any.
            repo_prefix: Prefix of generated repository names.
            max_attempts: Default attempt budget per run.
            commit_mode: Default commit placement per run.
            max_workers: Size of the worker pool for background runs.
        """
        self.registry = registry
        self.github = github
        self.committer = BlobTreeCommitter(github) if github is not None else None
        self.deployer = deployer
        self.owner = owner
        self.org = org
        self.repo_prefix = repo_prefix
        self.max_attempts = max_attempts
        self.commit_mode = CommitMode(commit_mode)
        self.graph = build_graph(generator, runner, registry, self.committer)
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="sitesmith-run",
        )
        self._futures: dict[str, Future] = {}
        self._change_locks: dict[str, list] = {}
        self._locks_guard = threading.Lock()

    @classmethod
    def from_config(cls, config: ServiceConfig) -> "RunService":
        """Wire every collaborator from a ServiceConfig.

        Raises:
            ConfigError: If commits are enabled but GitHub credentials are missing.
            AgentError: If no LLM API key is configured.
        """
        github = None
        if config.commit_mode != CommitMode.DISABLED:
            config.require_github()
        if config.github_enabled:
            github = GitHubClient(
                token=config.github_token,
                api_url=config.github_api_url,
                timeout_ms=config.request_timeout_ms,
            )

        registry = RunRegistry()
        generator = SiteGenerator(
            api_key=config.anthropic_api_key,
            openai_api_key=config.openai_api_key,
            model=config.model,
        )
        runner = BuildRunner(
            builds_dir=config.builds_dir,
            work_root=config.work_root,
            timeout_seconds=config.build_timeout_seconds,
            registry=registry,
        )
        deployer = VercelDeployer(config.vercel_token) if config.vercel_token else None
        return cls(
            registry=registry,
            generator=generator,
            runner=runner,
            github=github,
            deployer=deployer,
            owner=config.github_owner,
            org=config.github_org,
            repo_prefix=config.repo_prefix,
            max_attempts=config.max_attempts,
            commit_mode=config.commit_mode,
            max_workers=config.max_workers,
        )

    # ------------------------------------------------------------------
    # Operations

    def start_run(self, prompt: str, options: RunOptions | None = None) -> str:
        """Register a run and start the generate/fix loop for it.

        Input is validated before the repository is created. Unless
        ``options.wait`` is set the loop runs on the worker pool and this
        returns as soon as the run is registered.

        Returns:
            The new run id.

        Raises:
            InputValidationError: On an empty prompt, unknown skill or
                unusable repository name.
            RemoteError: If the repository cannot be created.
        """
        options = options or RunOptions()
        if not prompt or not prompt.strip():
            raise InputValidationError("Prompt must not be empty")
        prompt = prompt.strip()
        skill = get_skill(options.skill)
        commit_mode = CommitMode(options.commit_mode or self.commit_mode)
        max_attempts = options.max_attempts or self.max_attempts

        run_id = str(uuid.uuid4())
        state = RunState(run_id=run_id, prompt=prompt, skill=skill.metadata.name)

        if commit_mode != CommitMode.DISABLED:
            if self.github is None or not self.owner:
                raise RunNotCommittableError("Commits are enabled but no GitHub account is configured")
            repo_name = self._resolve_repo_name(prompt, options.repo_name)
            repo = self.github.create_repo(repo_name, private=options.private, org=self.org)
            logger.info("[run %s] created repository %s", run_id, repo.html_url)
            state = state.model_copy(
                update={
                    "owner": repo.owner or self.owner,
                    "repo": repo.name,
                    "repo_url": repo.html_url,
                    "branch": repo.default_branch,
                }
            )

        self.registry.create(state)
        loop_state = make_initial_state(
            run_id=run_id,
            prompt=prompt,
            max_attempts=max_attempts,
            commit_mode=commit_mode,
            owner=state.owner,
            repo=state.repo,
            branch=state.branch or "main",
            skill=skill.metadata.name,
        )

        if options.wait:
            self._execute(run_id, loop_state)
        else:
            future = self._executor.submit(self._execute, run_id, loop_state)
            self._futures[run_id] = future
            future.add_done_callback(lambda _, run_id=run_id: self._futures.pop(run_id, None))
        return run_id

    def get_run_status(self, run_id: str) -> RunState | None:
        """Return the current snapshot of a run, or None if unknown. Never blocks on the loop."""
        return self.registry.get(run_id)

    def apply_changes(
        self,
        run_id: str,
        message: str,
        operations: Sequence[ChangeOperation],
    ) -> list[ChangeResult]:
        """Apply upserts and deletions to a run's repository, one commit each.

        Operations run strictly in order under a per-run lock. The first
        failure is reported as ``failed`` and every later operation as
        ``skipped``; earlier commits stay in place.

        Raises:
            InputValidationError: On an empty message or operation list.
            RunNotFoundError: If the run is unknown.
            RunNotCommittableError: If the run has no repository.
        """
        if not message or not message.strip():
            raise InputValidationError("Commit message must not be empty")
        if not operations:
            raise InputValidationError("At least one operation is required")

        run = self.registry.get(run_id)
        if run is None:
            raise RunNotFoundError(f"Run not found: {run_id}")
        if self.committer is None or not run.repo or not run.owner:
            raise RunNotCommittableError(f"Run {run_id} has no repository to change")

        results: list[ChangeResult] = []
        with self._change_lock(run_id):
            failed = False
            for operation in operations:
                if failed:
                    results.append(
                        ChangeResult(path=operation.path, op=operation.op, action="skipped")
                    )
                    continue
                result = self._apply_one(run, message.strip(), operation)
                failed = result.action == "failed"
                results.append(result)

        logger.info(
            "[run %s] applied %d/%d change(s) to %s",
            run_id,
            sum(1 for result in results if result.action not in ("failed", "skipped")),
            len(results),
            run.repo,
        )
        return results

    def wait_for_run(self, run_id: str, timeout: float | None = None) -> RunState | None:
        """Block until a background run finishes and return its final snapshot."""
        future = self._futures.get(run_id)
        if future is not None:
            future.result(timeout=timeout)
        return self.registry.get(run_id)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
        if self.github is not None:
            self.github.close()
        if self.deployer is not None:
            self.deployer.close()

    # ------------------------------------------------------------------
    # Helpers

    def _resolve_repo_name(self, prompt: str, requested: str | None) -> str:
        if requested and requested.strip():
            name = sanitize_repo_name(requested.strip())
            if not name:
                raise InputValidationError(f"Invalid repository name: '{requested}'")
            return name
        return generate_repo_name(prompt, prefix=self.repo_prefix)

    def _execute(self, run_id: str, loop_state: dict) -> None:
        try:
            run_loop(self.graph, loop_state)
        except Exception as exc:
            logger.exception("[run %s] loop crashed", run_id)
            self._mark_failed(run_id, f"Internal error: {exc}")
        self._deploy(run_id)

    def _mark_failed(self, run_id: str, error: str) -> None:
        current = self.registry.get(run_id)
        if current is None or current.is_terminal:
            return
        self.registry.update(
            run_id,
            status=RunStatus.FAILED,
            phase=RunPhase.FAILED,
            build_error=error,
        )

    def _deploy(self, run_id: str) -> None:
        run = self.registry.get(run_id)
        if (
            self.deployer is None
            or run is None
            or run.status != RunStatus.READY
            or not run.repo
            or not run.owner
        ):
            return
        try:
            project = self.deployer.create_project(run.repo, run.owner, run.repo)
        except DeploymentError as exc:
            logger.warning("[run %s] deployment failed: %s", run_id, exc)
            self.registry.update(run_id, deploy_error=str(exc))
            return
        self.registry.update(run_id, deploy_url=project.url)

    @contextmanager
    def _change_lock(self, run_id: str) -> Iterator[None]:
        # Entries are [lock, holders + waiters]; dropped when nobody needs them.
        with self._locks_guard:
            entry = self._change_locks.setdefault(run_id, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._change_locks[run_id]

    def _apply_one(self, run: RunState, message: str, operation: ChangeOperation) -> ChangeResult:
        path = normalize_path(operation.path)
        try:
            if not path or ".." in path.split("/"):
                raise InputValidationError(f"Invalid path: '{operation.path}'")
            if isinstance(operation, UpsertOperation):
                entry = FileEntry(path=path, content=operation.content, encoding=operation.encoding)
                entry.raw_bytes()  # rejects undecodable base64 before any commit
                action, commit = self.committer.upsert_path(
                    run.owner, run.repo, run.branch, entry, message
                )
            else:
                commit = self.committer.delete_path(run.owner, run.repo, run.branch, path, message)
                action = "deleted"
        except SitesmithError as exc:
            logger.warning("[run %s] %s %s failed: %s", run.run_id, operation.op, path, exc)
            return ChangeResult(path=path or operation.path, op=operation.op, action="failed", error=str(exc))

        logger.info("[run %s] %s %s -> %s (%s)", run.run_id, operation.op, path, action, commit.commit_id[:7])
        return ChangeResult(path=path, op=operation.op, action=action, commit_id=commit.commit_id)
