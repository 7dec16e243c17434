import inspect
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from openai import AsyncOpenAI

load_dotenv()  # Load environment variables from .env file if present

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

from dal.session_dal import SQLiteSessionBackend
from routes.analyze_route import router as analyze_router
from routes.conversation_route import router as conversation_router
from routes.session_route import router as session_router
from services.openai.visual_explainer import VisualExplainer
from services.session.expiry import ExpiryPolicy
from services.session.session_manager import SessionManager
from utils.config import Settings
from utils.database_init import AsyncDatabaseInitializer
from utils.errors import register_exception_handlers

LOGGER = logging.getLogger(__name__)


async def build_session_manager(settings: Settings) -> SessionManager:
    """Pick the session backend once, from configuration, for the process lifetime."""
    persistent = None
    if settings.persistent_sessions:
        db_initializer = AsyncDatabaseInitializer(settings.session_database_dir)
        await db_initializer.ensure_database()
        persistent = SQLiteSessionBackend(db_initializer)
    return SessionManager(
        persistent,
        policy=ExpiryPolicy(settings.session_ttl_seconds),
        cleanup_interval_seconds=settings.cleanup_interval_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan manager to initialize:
      - the session manager (SQLite-backed when SESSION_DATABASE_DIR is set)
        and its background expiry sweep
      - the OpenAI async client and the explainer built on it
    and attach them to `app.state`.
    """
    settings: Settings = app.state.settings

    # A missing key is reported per request (500) so session routes keep working.
    openai_client = None
    if settings.openai_api_key:
        try:
            openai_client = AsyncOpenAI(api_key=settings.openai_api_key)
        except Exception as exc:
            raise RuntimeError("Failed to initialize OpenAI Async client") from exc
    else:
        LOGGER.warning("OPENAI_API_KEY is not set; image analysis requests will fail.")

    app.state.openai_client = openai_client
    app.state.explainer = VisualExplainer(openai_client, model=settings.openai_model)

    session_manager = await build_session_manager(settings)
    session_manager.start()
    app.state.session_manager = session_manager

    LOGGER.info(
        "Visual explainer ready (OpenAI: %s, sessions: %s)",
        "configured" if openai_client else "NOT CONFIGURED",
        session_manager.backend_name,
    )

    try:
        yield
    finally:
        await session_manager.shutdown()

        # Gracefully close the OpenAI client if it exposes a close/aclose method.
        client = getattr(app.state, "openai_client", None)
        if client is not None:
            aclose = getattr(client, "aclose", None) or getattr(client, "close", None)
            if aclose is not None:
                try:
                    if inspect.iscoroutinefunction(aclose):
                        await aclose()
                    else:
                        result = aclose()
                        if inspect.isawaitable(result):
                            await result
                except Exception:
                    LOGGER.warning("Error while closing the OpenAI client", exc_info=True)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application instance.
    """
    settings = settings or Settings.from_env()

    app = FastAPI(title="Visual Explainer API", lifespan=lifespan)
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    @app.get("/health")
    async def health(request: Request):
        """
        Health check with session statistics and OpenAI client presence.
        """
        session_manager: SessionManager = request.app.state.session_manager
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "openaiConfigured": getattr(request.app.state, "openai_client", None) is not None,
            "sessions": await session_manager.stats(),
        }

    # Register application routers
    app.include_router(analyze_router)
    app.include_router(conversation_router)
    app.include_router(session_router)

    return app


app = create_app()
