from __future__ import annotations

import logging
import time
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from cafehoppr.core.config import settings
from cafehoppr.core.logging_config import configure_logging
from cafehoppr.db.base import Base
from cafehoppr.db.session import SessionLocal, engine

import cafehoppr.models

from cafehoppr.routers import auth, cafes, locations, reviews, tokens
from cafehoppr.schemas.common import fail
from cafehoppr.services.access import get_access_code

configure_logging(log_dir=settings.log_dir, level=settings.log_level, filename="api.log")
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(title="Cafe Hoppr API", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    def on_startup() -> None:
        Base.metadata.create_all(bind=engine)
        db = SessionLocal()
        try:
            get_access_code(db)
        finally:
            db.close()
        logger.info("DB ready")

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=fail(str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content=fail("Validation error", jsonable_encoder(exc.errors())))

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.time()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("Unhandled error")
            return JSONResponse(status_code=500, content=fail("Internal server error"))
        duration_ms = int((time.time() - start) * 1000)
        logger.info("%s %s -> %s (%sms)", request.method, request.url.path, response.status_code, duration_ms)
        return response

    app.include_router(auth.router)
    app.include_router(cafes.router)
    app.include_router(reviews.router)
    app.include_router(locations.router)
    app.include_router(tokens.router)

    upload_dir = Path(settings.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=str(upload_dir)), name="uploads")

    @app.get("/health", include_in_schema=False)
    def health() -> dict:
        return {"success": True, "data": {"status": "ok"}}

    return app


app = create_app()
