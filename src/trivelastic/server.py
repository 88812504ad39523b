"""HTTP Surface Module

FastAPI application with a single catch-all route. Every request, on
any path and with any method (extension methods included), is handed to
the worker pool; the handler only bridges between the event loop and
the pool threads.
"""

import asyncio
import logging
from typing import Optional

from fastapi import FastAPI, Request, Response
from starlette.concurrency import run_in_threadpool

from .pool import WorkerPool


def create_app(pool: WorkerPool, logger: Optional[logging.Logger] = None) -> FastAPI:
    """Build the application around an already-running worker pool."""
    log = logger or logging.getLogger(__name__)
    app = FastAPI(title="trivelastic", docs_url=None, redoc_url=None, openapi_url=None)

    async def handle(request: Request) -> Response:
        path = "/" + request.path_params.get("path", "")
        log.debug(
            "Handling incoming request %s %s from %s",
            request.method,
            path,
            request.client.host if request.client else "-",
            extra={"component": "server", "method": request.method, "path": path},
        )
        loop = asyncio.get_running_loop()

        def read_body() -> bytes:
            # Runs on a worker thread; the body stream lives on the event loop.
            return asyncio.run_coroutine_threadsafe(request.body(), loop).result()

        reply = await run_in_threadpool(pool.submit, request.method, path, read_body)
        return Response(
            content=reply.body,
            status_code=reply.status_code,
            media_type=reply.media_type,
        )

    # methods=None: the method check belongs to the worker, not the router
    app.add_route("/{path:path}", handle, methods=None, include_in_schema=False)

    return app
