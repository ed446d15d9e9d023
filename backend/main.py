import os
import sys
import logging
from contextlib import asynccontextmanager

# Ensure this directory is in the path for uvicorn and other runners
current_dir = os.path.dirname(os.path.abspath(__file__))
if current_dir not in sys.path:
    sys.path.append(current_dir)

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import CORS_ORIGINS
from database import StoreGateway
from errors import BoardError, StoreError
from routes.task_routes import router as task_router
from routes.category_routes import router as category_router

logger = logging.getLogger(__name__)


def _envelope(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


async def board_error_handler(request: Request, exc: BoardError) -> JSONResponse:
    if isinstance(exc, StoreError):
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return _envelope(exc.status_code, exc.message)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies (bad enum, bad date, wrong types) are plain 400s."""
    parts = []
    for error in exc.errors():
        loc = [str(x) for x in error.get("loc", ()) if x != "body"]
        parts.append(f"{'.'.join(loc) or 'body'}: {error.get('msg', 'Invalid value')}")
    return _envelope(400, "; ".join(parts) or "Invalid request")


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unexpected error on {request.method} {request.url.path}: {exc!r}")
    return _envelope(500, "Internal server error")


def create_app(gateway: StoreGateway | None = None) -> FastAPI:
    """
    Build the HTTP app around a gateway. When none is passed, one is built
    from config on startup (schema bootstrapped) and disposed on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = None
        if getattr(app.state, "gateway", None) is None:
            owned = StoreGateway()
            owned.init_schema()
            app.state.gateway = owned
        yield
        if owned is not None:
            owned.dispose()
            app.state.gateway = None

    app = FastAPI(title="Task Board", lifespan=lifespan)
    app.state.gateway = gateway

    app.add_exception_handler(BoardError, board_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/v1/health-check")
    def health(request: Request):
        """Round-trips a trivial query through the store."""
        request.app.state.gateway.ping()
        return {"success": True, "data": {"database": "ok"}}

    app.include_router(task_router)
    app.include_router(category_router)
    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
