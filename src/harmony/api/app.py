from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from harmony.api.admin_routes import router as admin_router
from harmony.api.auth_routes import router as auth_router
from harmony.api.company_routes import router as company_router
from harmony.api.job_routes import router as job_router
from harmony.api.routes import router as api_router
from harmony.config import get_settings
from harmony.db.init import init_database
from harmony.errors import HarmonyError, ValidationError

logger = logging.getLogger(__name__)


async def harmony_error_handler(request: Request, exc: HarmonyError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(exc.to_payload(), status_code=exc.status_code)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if not errors:
        return await harmony_error_handler(request, ValidationError("payload", "invalid request"))
    error = errors[0]
    # drop the leading "body"/"query"/"path" segment
    location = [str(part) for part in error.get("loc", ())[1:]]
    field = ".".join(location) or "payload"
    return await harmony_error_handler(request, ValidationError(field, error.get("msg", "invalid value")))


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse({"message": str(exc.detail)}, status_code=exc.status_code, headers=exc.headers)


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(title=settings.app_name)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(HarmonyError, harmony_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)

    @app.on_event("startup")
    def _startup() -> None:
        init_database()

    @app.get("/health")
    def health() -> JSONResponse:
        return JSONResponse({"status": "ok"})

    # auth first: /api/users/check-* must win over /api/users/{user_id}
    app.include_router(auth_router)
    app.include_router(job_router)
    app.include_router(company_router)
    app.include_router(admin_router)
    app.include_router(api_router)
    return app
