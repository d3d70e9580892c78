"""Tests for the exception hierarchy."""

import pytest

from sitesmith.agents.exceptions import (
    AgentError,
    BuildError,
    BuildTimeout,
    GenerationFailure,
    ProcessFailure,
    WriteFailure,
)
from sitesmith.deploy import DeploymentError
from sitesmith.exceptions import (
    ConfigError,
    InputValidationError,
    InternalInvariantViolation,
    SitesmithError,
)
from sitesmith.github.exceptions import (
    PartialBlobFailure,
    RemoteConflict,
    RemoteError,
    RemoteNotFound,
    RemoteRequestError,
    RemoteUnavailable,
)
from sitesmith.orchestrator.exceptions import GraphBuildError, OrchestratorError
from sitesmith.service.exceptions import RunNotCommittableError, RunNotFoundError, ServiceError
from sitesmith.store.run_registry import StoreError, UnknownRunError


class TestHierarchy:
    @pytest.mark.parametrize(
        "exc_class",
        [
            InputValidationError,
            InternalInvariantViolation,
            ConfigError,
            AgentError,
            RemoteError,
            OrchestratorError,
            ServiceError,
            DeploymentError,
        ],
    )
    def test_everything_derives_from_root(self, exc_class):
        assert issubclass(exc_class, SitesmithError)

    @pytest.mark.parametrize(
        "exc_class",
        [RemoteNotFound, RemoteConflict, RemoteUnavailable, RemoteRequestError, PartialBlobFailure],
    )
    def test_remote_kinds(self, exc_class):
        assert issubclass(exc_class, RemoteError)

    def test_build_errors_are_agent_errors(self):
        for exc_class in (WriteFailure, ProcessFailure, BuildTimeout):
            assert issubclass(exc_class, BuildError)
        assert issubclass(GenerationFailure, AgentError)
        assert not issubclass(GenerationFailure, BuildError)

    def test_store_errors_are_invariant_violations(self):
        assert issubclass(UnknownRunError, StoreError)
        assert issubclass(StoreError, InternalInvariantViolation)

    def test_service_and_orchestrator_errors(self):
        assert issubclass(RunNotFoundError, ServiceError)
        assert issubclass(RunNotCommittableError, ServiceError)
        assert issubclass(GraphBuildError, OrchestratorError)


class TestAttributes:
    def test_remote_error_keeps_status(self):
        exc = RemoteConflict("exists", status_code=422)
        assert exc.status_code == 422
        assert str(exc) == "exists"

    def test_partial_blob_failure_names_path_and_cause(self):
        cause = RemoteUnavailable("down", status_code=503)
        exc = PartialBlobFailure("app/page.tsx", cause)

        assert exc.path == "app/page.tsx"
        assert exc.cause is cause
        assert exc.status_code == 503
        assert "app/page.tsx" in str(exc)

    def test_process_failure_carries_output(self):
        exc = ProcessFailure(["npm", "run", "build"], 1, "Failed to compile.")

        assert exc.exit_code == 1
        assert exc.raw_output == "Failed to compile."
        assert str(exc) == "npm run build exited with code 1"

    def test_build_timeout_output_ends_with_message(self):
        exc = BuildTimeout(["npm", "install"], 600, "partial log")

        assert exc.raw_output.startswith("partial log")
        assert exc.raw_output.endswith("npm install timed out after 600s")

    def test_build_error_without_output_uses_message(self):
        assert WriteFailure("disk full").raw_output == "disk full"

    def test_generation_failure_reason(self):
        assert GenerationFailure("no files").reason == "no files"
