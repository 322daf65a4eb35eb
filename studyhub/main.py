import studyhub.db.base  # noqa: F401
import studyhub.models  # noqa: F401

import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi_mcp import FastApiMCP
from starlette.exceptions import HTTPException as StarletteHTTPException

from studyhub.core.config import settings
from studyhub.core.logging import setup_logging
from studyhub.api.routes.health import router as health_router
from studyhub.api.routes.groups import router as groups_router
from studyhub.api.routes.profiles import router as profiles_router


setup_logging()
logger = logging.getLogger(__name__)
app = FastAPI(title="Study Hub API", version="0.1.0")

local_cors_origin_regex = (
    r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"
    if settings.env in {"local", "test"}
    else None
)


def _validation_message(errors: list[dict]) -> str:
    parts: list[str] = []
    for err in errors:
        loc = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path"))
        msg = err.get("msg", "Invalid value")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts) or "Invalid request"


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse({"error": str(exc.detail)}, status_code=exc.status_code, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    return JSONResponse(
        {"error": _validation_message(errors), "details": jsonable_encoder(errors)},
        status_code=400,
    )


@app.exception_handler(Exception)
async def debug_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception for %s %s", request.method, request.url.path)
    body = {"error": str(exc) or exc.__class__.__name__}
    if settings.env in {"local", "test"}:
        body["traceback"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return JSONResponse(body, status_code=500)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list(),
    allow_origin_regex=local_cors_origin_regex,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(profiles_router, prefix=settings.api_prefix)
app.include_router(groups_router, prefix=settings.api_prefix)

mcp = FastApiMCP(app)
mcp.mount_http()
