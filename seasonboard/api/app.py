"""
FastAPI application.

`create_app()` returns an app whose lifespan builds the components from
`Config` (or uses the ones passed in), and closes what it built on
shutdown. Every request runs inside a `LogContext` carrying a request id,
which is echoed back in the `X-Request-ID` header.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.exceptions import RequestValidationError

from seasonboard import __version__
from seasonboard.api.components import AppComponents, build_components
from seasonboard.api.exception_handlers import (
    general_exception_handler,
    http_exception_handler,
    seasonboard_exception_handler,
    validation_exception_handler,
)
from seasonboard.api.routes import router
from seasonboard.core.exceptions import SeasonboardError
from seasonboard.core.logging.logger import LogContext, get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def create_app(components: Optional[AppComponents] = None) -> FastAPI:
    @asynccontextmanager
    async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        owned = components is None
        app.state.components = await build_components() if owned else components
        logger.info("API started", extra={"version": __version__})

        yield

        if owned:
            await app.state.components.close()
        logger.info("API stopped")

    app = FastAPI(title="Seasonboard API", version=__version__, lifespan=app_lifespan)

    if components is not None:
        # Also usable without running the lifespan
        app.state.components = components

    @app.middleware("http")
    async def request_context(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        async with LogContext(
            component="api",
            operation=f"{request.method} {request.url.path}",
            request_id=request.headers.get(REQUEST_ID_HEADER),
        ) as ctx:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = ctx.request_id
            return response

    app.include_router(router)

    app.add_exception_handler(SeasonboardError, seasonboard_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    return app
