"""FastAPI application exposing the run service over HTTP."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import List

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse

from sitesmith.api.webhook import WhatsAppClient, create_webhook_router
from sitesmith.exceptions import InputValidationError, SitesmithError
from sitesmith.github.exceptions import (
    RemoteConflict,
    RemoteError,
    RemoteNotFound,
    RemoteRequestError,
    RemoteUnavailable,
)
from sitesmith.models import (
    ChangesRequest,
    ChangesResponse,
    RunRequest,
    RunState,
    RunStatus,
    SkillSummary,
)
from sitesmith.service.exceptions import RunNotCommittableError, RunNotFoundError
from sitesmith.service.runs import RunService
from sitesmith.skills import list_skills

logger = logging.getLogger(__name__)

INDEX_FILE = "index.html"


def create_app(
    service: RunService,
    verify_token: str | None = None,
    messenger: WhatsAppClient | None = None,
) -> FastAPI:
    """Build the API around an already wired RunService.

    The WhatsApp webhook is mounted only when ``verify_token`` is set.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        logger.info("Shutting down run workers...")
        service.shutdown(wait=False)
        if messenger is not None:
            messenger.close()

    app = FastAPI(title="Sitesmith API", version="1.0.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _register_error_handlers(app)
    if verify_token:
        app.include_router(create_webhook_router(service, verify_token, messenger))

    @app.post("/runs", status_code=201, response_model=RunState)
    def create_run(body: RunRequest) -> RunState:
        run_id = service.start_run(body.prompt, body.to_options())
        logger.info("POST /runs -> run %s", run_id)
        return service.get_run_status(run_id)

    @app.get("/runs/{run_id}", response_model=RunState)
    def get_run(run_id: str) -> RunState:
        return _require_run(service, run_id)

    @app.post("/runs/{run_id}/changes", response_model=ChangesResponse)
    def apply_changes(run_id: str, body: ChangesRequest) -> ChangesResponse:
        _require_run(service, run_id)
        results = service.apply_changes(run_id, body.message, body.operations)
        ok = all(result.action not in ("failed", "skipped") for result in results)
        return ChangesResponse(ok=ok, results=results)

    @app.get("/skills", response_model=List[SkillSummary])
    def get_skills() -> List[SkillSummary]:
        return list_skills()

    @app.get("/preview-builds/{run_id}")
    @app.get("/preview-builds/{run_id}/{file_path:path}")
    def preview_build(run_id: str, file_path: str = ""):
        run = _require_run(service, run_id)
        if run.status != RunStatus.READY or not run.artifact_path:
            status_code = 500 if run.status == RunStatus.FAILED else 202
            content = {"buildStatus": run.status.value}
            if run.build_error:
                content["buildError"] = run.build_error
            return JSONResponse(status_code=status_code, content=content)

        target = _resolve_static_file(Path(run.artifact_path), file_path)
        if target is None:
            return JSONResponse(status_code=404, content={"error": "file not found"})
        return FileResponse(target)

    return app


def _require_run(service: RunService, run_id: str) -> RunState:
    run = service.get_run_status(run_id)
    if run is None:
        raise RunNotFoundError(f"run not found: {run_id}")
    return run


def _resolve_static_file(root: Path, file_path: str) -> Path | None:
    """Map a request path onto the static export, or None if nothing matches.

    Tries the path itself, its index.html, then ``<path>.html`` (how Next.js
    exports routes without trailing slashes).
    """
    resolved_root = root.resolve()
    relative = file_path.strip("/")
    candidates = [resolved_root / relative] if relative else []
    candidates.append(resolved_root / relative / INDEX_FILE if relative else resolved_root / INDEX_FILE)
    if relative:
        candidates.append(resolved_root / f"{relative}.html")

    for candidate in candidates:
        target = candidate.resolve()
        if not target.is_relative_to(resolved_root):
            return None
        if target.is_file():
            return target
    return None


def _register_error_handlers(app: FastAPI) -> None:
    def _error(status_code: int, message: str) -> JSONResponse:
        return JSONResponse(status_code=status_code, content={"error": message})

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": "validation", "issues": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(InputValidationError)
    async def handle_input_validation(request: Request, exc: InputValidationError):
        return _error(400, str(exc))

    @app.exception_handler(RunNotFoundError)
    async def handle_run_not_found(request: Request, exc: RunNotFoundError):
        return _error(404, str(exc))

    @app.exception_handler(RemoteNotFound)
    async def handle_remote_not_found(request: Request, exc: RemoteNotFound):
        return _error(404, str(exc))

    @app.exception_handler(RemoteConflict)
    async def handle_remote_conflict(request: Request, exc: RemoteConflict):
        if exc.status_code == 422:
            return _error(409, "Repository may already exist or the name is invalid")
        return _error(409, str(exc))

    @app.exception_handler(RunNotCommittableError)
    async def handle_not_committable(request: Request, exc: RunNotCommittableError):
        return _error(409, str(exc))

    @app.exception_handler(RemoteUnavailable)
    async def handle_remote_unavailable(request: Request, exc: RemoteUnavailable):
        return _error(502, str(exc))

    @app.exception_handler(RemoteRequestError)
    async def handle_remote_request(request: Request, exc: RemoteRequestError):
        status_code = exc.status_code if exc.status_code and exc.status_code < 500 else 502
        return _error(status_code, str(exc))

    @app.exception_handler(RemoteError)
    async def handle_remote_error(request: Request, exc: RemoteError):
        return _error(502, str(exc))

    @app.exception_handler(SitesmithError)
    async def handle_sitesmith_error(request: Request, exc: SitesmithError):
        logger.error("Unhandled service error: %s", exc)
        return _error(500, "internal server error")
