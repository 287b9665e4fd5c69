from contextlib import asynccontextmanager
import logging

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.exceptions import (
    ApprovalEngineError,
    ClaimNotFound,
    ConcurrentModificationConflict,
    CurrencyConversionError,
    InvalidPolicyError,
    NotActionable,
    NotAuthorized,
    RuleResolutionError,
)
from app.core.logging import setup_logging

setup_logging()

logger = logging.getLogger(__name__)

# Initialize Sentry error monitoring
if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        environment=settings.APP_ENV,
        send_default_pii=False,
    )
    logger.info("Sentry initialized")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "Expense approval engine starting (env=%s, unassignable_step_policy=%s, empty_chain_policy=%s)",
        settings.APP_ENV, settings.UNASSIGNABLE_STEP_POLICY, settings.EMPTY_CHAIN_POLICY,
    )
    yield


app = FastAPI(
    title="Expense Approval Engine",
    version="0.1.0",
    docs_url="/api/docs" if settings.APP_ENV != "production" else None,
    redoc_url="/api/redoc" if settings.APP_ENV != "production" else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ─── Error mapping ───

_STATUS_BY_ERROR: dict[type[ApprovalEngineError], int] = {
    ClaimNotFound: 404,
    NotAuthorized: 403,
    NotActionable: 409,
    ConcurrentModificationConflict: 409,
    RuleResolutionError: 422,
    InvalidPolicyError: 422,
    CurrencyConversionError: 502,
}


@app.exception_handler(ApprovalEngineError)
async def approval_engine_error_handler(request: Request, exc: ApprovalEngineError):
    status_code = 400
    for error_type, code in _STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            status_code = code
            break
    detail = str(exc)
    if isinstance(exc, ConcurrentModificationConflict):
        detail = f"{detail} Reload the claim and retry."
    logger.info(
        "%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc,
    )
    return JSONResponse(
        status_code=status_code,
        content={"detail": detail, "error": type(exc).__name__},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception: %s %s: %s", request.method, request.url.path, exc, exc_info=True)
    return JSONResponse(status_code=500, content={"detail": "Internal server error."})


# ─── Routers ───
from app.api.v1.router import api_router  # noqa: E402

app.include_router(api_router, prefix="/api/v1")


@app.get("/health")
async def health():
    return {"status": "ok", "env": settings.APP_ENV}
