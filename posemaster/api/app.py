from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse

from posemaster import __version__
from posemaster.api.routes import router
from posemaster.errors import InvalidInput, PoseMasterError
from posemaster.facade.core import PoseMaster

logger = logging.getLogger(__name__)


def create_app(pm: PoseMaster, *, run_scheduler: bool = True) -> FastAPI:
    """Build the HTTP app around an already-configured :class:`PoseMaster`.

    The stores are initialised on startup and closed on shutdown; the
    daily backup scheduler runs for the lifetime of the app unless
    *run_scheduler* is false.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await pm.init()
        if run_scheduler:
            pm.start_scheduler()
        try:
            yield
        finally:
            await pm.close()

    app = FastAPI(
        title="PoseMaster API",
        description="Pose extraction ingest and backup export.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.posemaster = pm
    app.include_router(router)

    @app.exception_handler(PoseMasterError)
    async def handle_posemaster_error(
        request: Request, exc: PoseMasterError
    ) -> JSONResponse:
        logger.info("%s %s -> %s", request.method, request.url.path, exc.category)
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.category},
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        # Missing or malformed request bodies never reach the gateway.
        return JSONResponse(
            status_code=InvalidInput.status_code,
            content={"success": False, "error": InvalidInput.category},
        )

    @app.get("/", include_in_schema=False)
    async def redirect_to_docs() -> RedirectResponse:
        return RedirectResponse(url="/docs")

    return app
