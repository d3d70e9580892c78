"""Build Runner agent: materialises a file set and runs the static-export build."""

import logging
import shutil
import subprocess
import tempfile
import time
from pathlib import Path

from sitesmith.agents.exceptions import BuildError, BuildTimeout, ProcessFailure, WriteFailure
from sitesmith.models import BuildOutcome, FileSet, RunPhase, RunStatus
from sitesmith.store.run_registry import RunRegistry

logger = logging.getLogger(__name__)

DEFAULT_BUILD_COMMANDS: tuple[tuple[str, ...], ...] = (
    ("npm", "install", "--prefer-offline", "--legacy-peer-deps"),
    ("npm", "run", "build"),
)
DEFAULT_TIMEOUT = 600
OUTPUT_DIR_NAME = "out"

# Always written over whatever the generator produced: the artifact copy
# depends on Next.js emitting a static export into out/.
FORCED_CONFIG_PATH = "next.config.js"
FORCED_CONFIG_CONTENT = """/** @type {import('next').NextConfig} */
const nextConfig = { output: 'export' };
module.exports = nextConfig;
"""
COMPETING_CONFIG_PATHS = ("next.config.mjs", "next.config.ts", "next.config.cjs")


class BuildRunner:
    """Runs install + build for one attempt in an exclusive working directory."""

    def __init__(
        self,
        builds_dir: str | Path,
        work_root: str | Path | None = None,
        timeout_seconds: int = DEFAULT_TIMEOUT,
        build_commands: list[list[str]] | None = None,
        registry: RunRegistry | None = None,
    ) -> None:
        """Initialize the runner.

        Args:
            builds_dir: Root under which successful outputs are kept, one
                directory per run id.
            work_root: Parent for per-attempt working directories (defaults
                to the system temp dir).
            timeout_seconds: Wall-clock ceiling per command.
            build_commands: Commands run in order; defaults to npm install
                then npm run build.
            registry: Optional run registry marked ``building`` when an
                attempt starts.
        """
        self.builds_dir = Path(builds_dir)
        self.work_root = Path(work_root) if work_root else None
        self.timeout_seconds = timeout_seconds
        self.build_commands: list[list[str]] = (
            [list(cmd) for cmd in build_commands]
            if build_commands
            else [list(cmd) for cmd in DEFAULT_BUILD_COMMANDS]
        )
        self.registry = registry

    def artifact_path(self, run_id: str) -> Path:
        return self.builds_dir / run_id

    def build(
        self,
        run_id: str,
        file_set: FileSet,
        attempt_number: int = 1,
        build_commands: list[list[str]] | None = None,
    ) -> BuildOutcome:
        """Build ``file_set`` and copy the static output to the artifact location.

        Flow:
        1. Allocate a fresh working directory for this run and attempt
        2. Write every file, then force the static-export config
        3. Run each command, stopping at the first non-zero exit
        4. Copy out/ to builds_dir/<run_id>
        5. Remove the working directory, whatever happened

        Raises:
            WriteFailure: If a file cannot be written or escapes the directory.
            ProcessFailure: If a command exits non-zero or produces no output.
            BuildTimeout: If a command exceeds ``timeout_seconds``.
        """
        commands = [list(cmd) for cmd in build_commands] if build_commands else self.build_commands
        if self.registry is not None:
            self.registry.update(run_id, status=RunStatus.BUILDING, phase=RunPhase.BUILDING)
        if self.work_root is not None:
            self.work_root.mkdir(parents=True, exist_ok=True)
        work_dir = Path(
            tempfile.mkdtemp(
                prefix=f"build-{run_id}-{attempt_number}-",
                dir=str(self.work_root) if self.work_root else None,
            )
        )

        started = time.monotonic()
        try:
            logger.info("[run %s] attempt %d: building in %s", run_id, attempt_number, work_dir)
            self._write_files(work_dir, file_set)
            outputs: list[str] = []
            for command in commands:
                logger.info("[run %s] %s", run_id, " ".join(command))
                outputs.append(self._run_command(command, work_dir))
            artifact = self._copy_output(work_dir, run_id, "\n".join(outputs))
            duration_ms = int((time.monotonic() - started) * 1000)
            logger.info("[run %s] attempt %d: build ready -> %s", run_id, attempt_number, artifact)
            return BuildOutcome(
                run_id=run_id,
                attempt_number=attempt_number,
                work_dir=str(work_dir),
                artifact_path=str(artifact),
                output="\n".join(outputs),
                duration_ms=duration_ms,
            )
        except BuildError as exc:
            exc.work_dir = str(work_dir)
            raise
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)

    def _write_files(self, work_dir: Path, file_set: FileSet) -> None:
        """Write entries under ``work_dir`` with a traversal check per path."""
        resolved_root = work_dir.resolve()
        try:
            for entry in file_set.normalized().files:
                target = (resolved_root / entry.path).resolve()
                if not target.is_relative_to(resolved_root):
                    raise WriteFailure(
                        f"Path traversal attempt detected: '{entry.path}' "
                        f"resolves outside of the working directory."
                    )
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(entry.raw_bytes())

            for competing in COMPETING_CONFIG_PATHS:
                (resolved_root / competing).unlink(missing_ok=True)
            (resolved_root / FORCED_CONFIG_PATH).write_text(FORCED_CONFIG_CONTENT, encoding="utf-8")
        except WriteFailure:
            raise
        except Exception as exc:
            raise WriteFailure(f"Failed to write build files: {exc}") from exc

    def _run_command(self, command: list[str], cwd: Path) -> str:
        """Run one command with combined stdout/stderr capture.

        Returns the captured output on a zero exit status.
        """
        try:
            result = subprocess.run(
                command,
                cwd=str(cwd),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=self.timeout_seconds,
            )
        except subprocess.TimeoutExpired as exc:
            raise BuildTimeout(command, self.timeout_seconds, _decode(exc.output)) from exc
        except OSError as exc:
            raise ProcessFailure(command, -1, f"Failed to start {command[0]}: {exc}") from exc

        output = result.stdout or ""
        if result.returncode != 0:
            raise ProcessFailure(command, result.returncode, output)
        return output

    def _copy_output(self, work_dir: Path, run_id: str, output: str) -> Path:
        out_dir = work_dir / OUTPUT_DIR_NAME
        if not out_dir.is_dir():
            raise ProcessFailure(
                ["build"],
                0,
                f"{output}\nError: build finished but produced no '{OUTPUT_DIR_NAME}/' directory",
            )
        destination = self.artifact_path(run_id)
        self.builds_dir.mkdir(parents=True, exist_ok=True)
        if destination.exists():
            shutil.rmtree(destination)
        shutil.copytree(out_dir, destination)
        return destination


def _decode(output: bytes | str | None) -> str:
    # TimeoutExpired.output is bytes even when text=True was requested.
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return output
