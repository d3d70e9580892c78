"""CLI entry point for sitesmith."""
import argparse
import json
import sys
import traceback

from sitesmith.agents.exceptions import AgentError
from sitesmith.config import ServiceConfig, load_config
from sitesmith.exceptions import ConfigError, InputValidationError
from sitesmith.github.exceptions import RemoteError
from sitesmith.logging_config import configure_logging
from sitesmith.models import CommitMode, RunOptions, RunState, RunStatus
from sitesmith.orchestrator.exceptions import OrchestratorError

# Exit codes
EXIT_SUCCESS = 0
EXIT_INVALID_INPUT = 1
EXIT_AGENT_ERROR = 2
EXIT_ORCHESTRATOR_ERROR = 3
EXIT_RUN_FAILED = 4
EXIT_UNEXPECTED = 5
EXIT_REMOTE_ERROR = 6
EXIT_KEYBOARD_INTERRUPT = 130

DEFAULT_HOST = "127.0.0.1"


def build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    parser = argparse.ArgumentParser(
        prog="sitesmith",
        description="Generate, build and publish static websites from a prompt",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Generate and build a site, waiting for the result")
    run.add_argument("prompt", type=str, help="Description of the website to build")
    run.add_argument(
        "--max-attempts",
        type=int,
        default=None,
        help="Generation attempts before giving up (default: SITESMITH_MAX_ATTEMPTS or 3)",
    )
    run.add_argument(
        "--commit-mode",
        type=str,
        default=None,
        choices=[mode.value for mode in CommitMode],
        help="Commit before the build, after a successful build, or not at all",
    )
    run.add_argument("--skill", type=str, default=None, help="Site template (default: minimal)")
    run.add_argument("--repo-name", type=str, default=None, help="Repository name to create")
    run.add_argument("--private", action="store_true", help="Create a private repository")
    run.add_argument("--output-json", action="store_true", help="Output results as JSON")
    run.add_argument(
        "--dry-run", action="store_true", help="Print config and exit without running"
    )
    run.add_argument("--verbose", action="store_true", help="Enable verbose output")

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", type=str, default=DEFAULT_HOST, help=f"Bind address (default: {DEFAULT_HOST})")
    serve.add_argument("--port", type=int, default=None, help="Port (default: PORT or 3000)")
    serve.add_argument("--verbose", action="store_true", help="Enable verbose output")
    return parser


def apply_overrides(config: ServiceConfig, args: argparse.Namespace) -> ServiceConfig:
    """Return ``config`` with CLI flags layered over environment values."""
    overrides = {}
    if getattr(args, "max_attempts", None) is not None:
        overrides["max_attempts"] = args.max_attempts
    if getattr(args, "commit_mode", None):
        overrides["commit_mode"] = CommitMode(args.commit_mode)
    if getattr(args, "port", None) is not None:
        overrides["port"] = args.port
    if not overrides:
        return config
    return ServiceConfig(**{**config.model_dump(), **overrides})


def create_service(config: ServiceConfig):
    """Create the run service.

    Imports are deferred to keep --help and --dry-run fast.
    """
    from sitesmith.service.runs import RunService

    return RunService.from_config(config)


def format_result_json(state: RunState) -> str:
    return json.dumps(state.model_dump(mode="json"), indent=2, default=str)


def print_result_human(state: RunState) -> None:
    """Print a run's final state in human-readable format."""
    print(f"\n{'='*60}")
    print("Sitesmith Run")
    print(f"{'='*60}")
    print(f"\nRun: {state.run_id}")
    print(f"Status: {state.status.value}")
    if state.repo_url:
        print(f"Repository: {state.repo_url}")
    if state.commit_id:
        print(f"Commit: {state.commit_id}")
    if state.artifact_path:
        print(f"Artifact: {state.artifact_path}")
    if state.deploy_url:
        print(f"Deployment: {state.deploy_url}")
    if state.deploy_error:
        print(f"Deployment error: {state.deploy_error}")

    print(f"\nAttempts ({len(state.attempts)}):")
    for attempt in state.attempts:
        line = f"  #{attempt.attempt_number} {attempt.stage}: {attempt.outcome.value} ({attempt.duration_ms} ms)"
        print(line)
        if attempt.error_excerpt:
            print(f"      {attempt.error_excerpt.splitlines()[0]}")

    if state.build_error:
        print(f"\nError:\n{state.build_error}")
    print(f"\n{'='*60}")


def determine_exit_code(state: RunState | None) -> int:
    if state is None:
        return EXIT_UNEXPECTED
    if state.status == RunStatus.READY:
        return EXIT_SUCCESS
    return EXIT_RUN_FAILED


def print_config_human(config: dict) -> None:
    """Print configuration in human-readable format."""
    print("\nConfiguration:")
    print(f"{'='*40}")
    for key, value in config.items():
        print(f"  {key}: {value}")
    print(f"{'='*40}")


def _handle_error(label: str, exc: BaseException, verbose: bool, exit_code: int) -> int:
    """Print error message to stderr and return the exit code."""
    print(f"{label}: {exc}", file=sys.stderr)
    if verbose:
        traceback.print_exc(file=sys.stderr)
    return exit_code


def run_command(args: argparse.Namespace) -> int:
    config = apply_overrides(load_config(), args)
    if args.dry_run:
        summary = {
            "prompt": args.prompt,
            "skill": args.skill,
            "repo_name": args.repo_name,
            "private": args.private,
            **config.safe_dump(),
        }
        if args.output_json:
            print(json.dumps(summary, indent=2, default=str))
        else:
            print_config_human(summary)
        return EXIT_SUCCESS

    service = create_service(config)
    try:
        run_id = service.start_run(
            args.prompt,
            RunOptions(
                repo_name=args.repo_name,
                private=args.private,
                skill=args.skill,
                wait=True,
            ),
        )
        state = service.get_run_status(run_id)
    finally:
        service.shutdown()

    if args.output_json:
        print(format_result_json(state))
    else:
        print_result_human(state)
    return determine_exit_code(state)


def serve_command(args: argparse.Namespace) -> int:
    import uvicorn

    from sitesmith.api.app import create_app
    from sitesmith.api.webhook import WhatsAppClient

    config = apply_overrides(load_config(), args)
    messenger = None
    if config.whatsapp_access_token:
        messenger = WhatsAppClient(config.whatsapp_access_token)
    app = create_app(
        create_service(config),
        verify_token=config.whatsapp_verify_token,
        messenger=messenger,
    )
    uvicorn.run(app, host=args.host, port=config.port, log_config=None)
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:]).

    Returns:
        Exit code integer.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(verbose=args.verbose)

    try:
        if args.command == "serve":
            return serve_command(args)
        return run_command(args)

    except (ConfigError, InputValidationError) as exc:
        return _handle_error("Invalid input", exc, args.verbose, EXIT_INVALID_INPUT)

    except AgentError as exc:
        return _handle_error("Agent error", exc, args.verbose, EXIT_AGENT_ERROR)

    except RemoteError as exc:
        return _handle_error("Repository error", exc, args.verbose, EXIT_REMOTE_ERROR)

    except OrchestratorError as exc:
        return _handle_error("Orchestrator error", exc, args.verbose, EXIT_ORCHESTRATOR_ERROR)

    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_KEYBOARD_INTERRUPT

    except Exception as exc:
        return _handle_error("Unexpected error", exc, args.verbose, EXIT_UNEXPECTED)


if __name__ == "__main__":
    sys.exit(main())
