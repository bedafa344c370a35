"""
Prompt Builder Backend — Main Application
FastAPI server for the prompt canvas: billing, refinement, saved prompts,
templates, user settings and the shared library.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import promptbuilder.models  # noqa: F401  (registers tables on Base.metadata)
from promptbuilder.core.config import settings
from promptbuilder.core.database import engine, Base
from promptbuilder.api.routes import (
    billing, webhooks, providers, refine, compose,
    prompts, templates, user_settings, library,
)

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Stripe mode: {settings.STRIPE_MODE.upper()}")
    logger.info(
        "Managed providers: "
        f"openai={'ON' if settings.OPENAI_API_KEY else 'OFF'}, "
        f"anthropic={'ON' if settings.ANTHROPIC_API_KEY else 'OFF'}, "
        f"google={'ON' if settings.GOOGLE_API_KEY else 'OFF'}"
    )

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    logger.info(f"Shutting down {settings.APP_NAME}")
    await engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    description=(
        "Backend for the Prompt Builder canvas. Composes prompts from components, "
        "refines and qualifies them with OpenAI, Anthropic or Google, and gates "
        "managed-key features behind a Stripe subscription."
    ),
    version=settings.APP_VERSION,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
)

# ── CORS ─────────────────────────────────────────────────────────────────────
origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Error Handlers ───────────────────────────────────────────────────────────
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    content = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid request body.", "details": details},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error."},
    )


# ── Routes ───────────────────────────────────────────────────────────────────
app.include_router(billing.router, prefix="/api", tags=["Billing"])
app.include_router(webhooks.router, prefix="/api", tags=["Webhooks"])
app.include_router(providers.router, prefix="/api", tags=["Providers"])
app.include_router(refine.router, prefix="/api", tags=["Refinement"])
app.include_router(compose.router, prefix="/api", tags=["Composition"])
app.include_router(prompts.router, prefix="/api", tags=["Prompts"])
app.include_router(templates.router, prefix="/api", tags=["Templates"])
app.include_router(user_settings.router, prefix="/api", tags=["User Settings"])
app.include_router(library.router, prefix="/api", tags=["Shared Library"])


# ── Health Check ─────────────────────────────────────────────────────────────
@app.get("/api/health", tags=["Health"])
async def health_check():
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "stripe_mode": settings.STRIPE_MODE,
    }


@app.get("/", tags=["Root"])
async def root():
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/api/docs",
    }
