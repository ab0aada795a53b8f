from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from prepwise.base.config import settings
from prepwise.base.database import init_db
from prepwise.base.dependencies import verify_api_key
from prepwise.base.error_handlers import register_exception_handlers
from prepwise.base.logging_config import app_logger as logger

from prepwise.routers import (
    billing,
    feedback,
    interviews,
    profiles,
    prompts,
    tavus,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info(f"🚀 {settings.PROJECT_NAME} started ({settings.ENVIRONMENT})")
    yield


# --- FastAPI app instance ---
app = FastAPI(
    title="PrepWise Interview API",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# --- CORS config ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Prometheus metrics ---
Instrumentator().instrument(app).expose(app)

# --- Exception handlers ---
register_exception_handlers(app)


# --- Logging middleware ---
@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(f"📥 {request.method} request to {request.url}")
    response = await call_next(request)
    logger.info(f"📤 Response: {response.status_code} for {request.url}")
    return response


# --- API Routers ---
secured = [Depends(verify_api_key)]

app.include_router(profiles.router, dependencies=secured)
app.include_router(interviews.router, dependencies=secured)
app.include_router(prompts.router, dependencies=secured)
app.include_router(feedback.router, dependencies=secured)
app.include_router(tavus.router)
app.include_router(billing.router)


# --- System endpoints ---
@app.get("/health", tags=["System"])
def health_check():
    return {"status": "ok"}


@app.get("/version", tags=["System"])
def version_check():
    return {
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT,
        "llm_model": settings.DEFAULT_LLM_MODEL,
    }
