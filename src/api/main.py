"""FastAPI application entry point."""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routers import accounts, bookmarks, cron, health, tags
from core.config import get_settings
from core.cursor import InvalidCursorError


app_settings = get_settings()

app = FastAPI(
    title="Bookmarks API",
    description="Bookmarks mirrored from a social bookmarking service, with search and cursor pagination.",  # noqa: E501
    version="0.1.0",
)


@app.exception_handler(InvalidCursorError)
async def invalid_cursor_exception_handler(
    _request: Request, exc: InvalidCursorError,
) -> JSONResponse:
    """Reject malformed pagination cursors as a client error."""
    return JSONResponse(status_code=400, content={"detail": str(exc)})


app.add_middleware(
    CORSMiddleware,
    allow_origins=app_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(bookmarks.router)
app.include_router(tags.router)
app.include_router(accounts.router)
app.include_router(cron.router)
