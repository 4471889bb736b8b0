"""
FastAPI application for the translation proxy.
"""
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from config.loader import load_model_overrides
from config.settings import (
    BACKEND_BASE_URL,
    DEFAULT_CONTEXT_WINDOW,
    DEFAULT_MODEL,
    LOG_LEVEL,
    MODEL_MAP,
    MODELS_JSON_PATH,
    MONITOR_MODE,
    PORT,
    TOKEN_FILE_DIR,
    TOKEN_FILE_ENABLED,
)
from constants import DROPPED_PARAMS_HEADER
from models.capabilities import ModelCapabilities
from proxy.endpoints import anthropic_messages, health
from proxy.errors import register_exception_handlers
from proxy.usage import SessionUsageTracker

logging.basicConfig(level=getattr(logging, LOG_LEVEL.upper(), logging.INFO))
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    known_models = [app.state.default_model, *app.state.model_map.values()]
    if any(known_models):
        app.state.capabilities.start_warm_up(known_models)
    yield


async def log_requests(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time

    # Only log API endpoints
    if request.url.path.startswith("/v1/"):
        logger.info(f"{request.method} {request.url.path} - {response.status_code} - {process_time:.3f}s")

    return response


def create_app() -> FastAPI:
    app = FastAPI(title="Anthropic OpenRouter Proxy", version="1.0.0", lifespan=lifespan)

    app.state.capabilities = ModelCapabilities(
        catalog_url=f"{BACKEND_BASE_URL.rstrip('/')}/models",
        default_context_window=DEFAULT_CONTEXT_WINDOW,
        overrides=load_model_overrides(MODELS_JSON_PATH),
    )
    app.state.default_model = DEFAULT_MODEL
    app.state.model_map = dict(MODEL_MAP)
    app.state.monitor_mode = MONITOR_MODE
    app.state.usage_tracker = SessionUsageTracker(PORT, TOKEN_FILE_DIR, write_file=TOKEN_FILE_ENABLED)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[DROPPED_PARAMS_HEADER],
    )
    app.middleware("http")(log_requests)
    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(anthropic_messages.router)
    return app


app = create_app()
