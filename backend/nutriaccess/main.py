# /backend/nutriaccess/main.py

from __future__ import annotations
import logging

from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from nutriaccess.config import CORS_ORIGINS, LOG_LEVEL
from nutriaccess.db import get_db
from nutriaccess.errors import ClinicError, TooManyAttempts, ValidationError, InternalError
from nutriaccess.api.routers import patient, professional, catalog, auth

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="NutriAccess API")

# 💡 1. CORS 미들웨어를 가장 먼저 등록합니다.
# 세션 쿠키를 쓰므로 allow_credentials 필수
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_body(exc: ClinicError) -> dict:
    return {"status": exc.status_code, "error": exc.error, "message": exc.message}


@app.exception_handler(ClinicError)
async def clinic_error_handler(request: Request, exc: ClinicError):
    headers = None
    if isinstance(exc, TooManyAttempts):
        headers = {"Retry-After": str(exc.retry_after)}
    if exc.status_code >= 500:
        logger.error("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc), headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "Invalid input"
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    return JSONResponse(status_code=400, content=_error_body(ValidationError(message)))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=_error_body(InternalError()))


# 💡 2. 그 다음에 API 라우터들을 등록합니다.
app.include_router(auth.router)
app.include_router(patient.router)
app.include_router(professional.router)
app.include_router(catalog.router)


@app.get("/health")
async def health():
    return {"ok": True}


@app.get("/db-health")
async def db_health(db: AsyncSession = Depends(get_db)):
    # 간단한 ping
    result = await db.execute(text("SELECT 1"))
    return {"db": "ok", "result": result.scalar_one()}
