# @TASK P0-T0.3 - FastAPI application entry point

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from quillnote import __version__
from quillnote.config import get_settings
from quillnote.dependencies import AppServices
from quillnote.exceptions import (
    ConflictError,
    NotFoundError,
    QuillnoteError,
    ValidationFailedError,
    field_problems,
)
from quillnote.utils.messages import msg


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the store and services on startup; flush and release them on shutdown."""
    services = AppServices.build(get_settings())
    await services.startup()
    app.state.services = services

    yield

    await services.shutdown()


app = FastAPI(
    title="Quillnote",
    description="Note-taking backend with a write-behind document mirror",
    version=__version__,
    lifespan=lifespan,
)

# --- CORS Middleware ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Error responses ---
_STATUS_BY_ERROR: dict[type[QuillnoteError], int] = {
    ValidationFailedError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_400_BAD_REQUEST,
}


@app.exception_handler(QuillnoteError)
async def quillnote_error_handler(request: Request, exc: QuillnoteError) -> JSONResponse:
    status_code = _STATUS_BY_ERROR.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ValidationFailedError(msg("request.invalid"), field_problems(exc.errors())).to_dict(),
    )


# --- Router includes ---
from quillnote.api.categories import router as categories_router
from quillnote.api.folders import router as folders_router
from quillnote.api.notes import router as notes_router
from quillnote.api.sync import router as sync_router
from quillnote.api.tags import router as tags_router
from quillnote.api.users import router as users_router

app.include_router(users_router, prefix="/api")
app.include_router(notes_router, prefix="/api")
app.include_router(folders_router, prefix="/api")
app.include_router(categories_router, prefix="/api")
app.include_router(tags_router, prefix="/api")
app.include_router(sync_router, prefix="/api")


@app.get("/api/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint.

    Returns a simple status response to verify the API is running.
    """
    return {"status": "ok"}
