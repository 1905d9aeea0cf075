from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from starlette.middleware.sessions import SessionMiddleware

from launchbot.chatbot.processor import ChatbotProcessor
from launchbot.core.app_context import AppContext, get_app_context, set_app_context
from launchbot.core.auth import DirectoryCredentialVerifier
from launchbot.core.logging import RequestIdMiddleware, setup_logging
from launchbot.core.scheduler import start_periodic, stop_tasks
from launchbot.core.state import ChatSessionStore, InMemorySessionStore, RedisSessionStore
from launchbot.db.base import Base
from launchbot.db.session import get_engine
from launchbot.router import api_router
from launchbot.services.chatbot_settings import ChatbotSettingsStore
from launchbot.services.deduplication_service import MessageDeduplicationService
from launchbot.services.notification_service import (
    NotificationPreferenceStore,
    NotificationService,
)
from launchbot.services.project_directory import SqlProjectDirectory
from launchbot.services.rate_limiter import (
    InMemoryRateLimiterBackend,
    LoginAttemptLimiter,
    RateLimiterBackend,
    RedisRateLimiterBackend,
)
from launchbot.settings import Settings, get_settings
from launchbot.whatsapp.adapter import MessageSender
from launchbot.whatsapp.router import router as whatsapp_router
from launchbot.whatsapp.whatsapp_api_adapter import CloudApiSender, LoggingSender

setup_logging()
logger = logging.getLogger(__name__)


def _build_sender(settings: Settings) -> MessageSender:
    if settings.whatsapp_access_token and settings.whatsapp_phone_number_id:
        logger.info("Outbound WhatsApp messages go through the Cloud API")
        return CloudApiSender(settings)
    logger.info("WhatsApp credentials not configured, outbound messages are only logged")
    return LoggingSender()


def _build_stores(settings: Settings) -> tuple[ChatSessionStore, RateLimiterBackend]:
    """Prefer Redis when configured, fall back to in-memory backends."""
    timeout = timedelta(minutes=settings.chat_session_timeout_minutes)
    redis_url = settings.redis_conn_url
    if redis_url:
        try:
            store = RedisSessionStore(redis_url, timeout=timeout)
            counters = RedisRateLimiterBackend(redis_url)
            logger.info("Chat session store initialized with Redis")
            return store, counters
        except Exception as e:
            logger.warning("Redis connection failed (%s), falling back to in-memory store", e)
    logger.info("Chat session store initialized with in-memory backend")
    return InMemorySessionStore(timeout=timeout), InMemoryRateLimiterBackend()


def build_app_context(settings: Settings) -> AppContext:
    store, counters = _build_stores(settings)
    directory = SqlProjectDirectory()
    verifier = DirectoryCredentialVerifier(directory)
    limiter = LoginAttemptLimiter(
        counters,
        max_attempts=settings.login_max_attempts,
        window_seconds=settings.login_window_seconds,
    )
    sender = _build_sender(settings)
    preferences = NotificationPreferenceStore()
    notifications = None
    if settings.notifications_enabled:
        notifications = NotificationService(
            directory,
            sender,
            preferences,
            summary_hour=settings.daily_summary_hour,
            summary_window_minutes=settings.daily_summary_window_minutes,
            timezone=settings.daily_summary_timezone,
        )
    return AppContext(
        store=store,
        directory=directory,
        verifier=verifier,
        processor=ChatbotProcessor(
            store, directory, verifier, limiter, timezone=settings.display_timezone
        ),
        sender=sender,
        deduplicator=MessageDeduplicationService(counters),
        preferences=preferences,
        chatbot_settings=ChatbotSettingsStore(preferences),
        notifications=notifications,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build the application context and run the periodic jobs."""
    settings = get_settings()

    if getattr(app.state, "ctx", None) is None:
        try:
            Base.metadata.create_all(bind=get_engine())
            logger.info("Database tables ensured (create_all)")
        except Exception as e:
            logger.warning("Failed to create DB tables on startup: %s", e)
        set_app_context(app, build_app_context(settings))
    ctx = get_app_context(app)

    tasks = [start_periodic("chat-session-sweep", settings.chat_session_sweep_seconds, ctx.store.sweep)]
    if ctx.notifications is not None:
        tasks.append(
            start_periodic(
                "chatbot-notifications",
                settings.notification_interval_seconds,
                ctx.notifications.run_once,
            )
        )

    yield

    await stop_tasks(tasks)
    logger.info("Application shutting down")


def create_app(ctx: AppContext | None = None) -> FastAPI:
    """Create the FastAPI app. A prebuilt context skips startup wiring."""
    settings = get_settings()
    app = FastAPI(
        title="LaunchRocket Chatbot API",
        version="0.1.0",
        description="WhatsApp chatbot for LaunchRocket projects and tasks",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:5000"],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Accept", "Content-Type", "Authorization", "X-Requested-With"],
    )
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret_key,
        max_age=86400,  # 24 hours
    )
    if ctx is not None:
        set_app_context(app, ctx)

    @app.get("/health", response_class=PlainTextResponse)
    async def health() -> str:
        return "ok"

    app.include_router(api_router)
    # Webhook also served at the root path configured in the Meta dashboard
    app.include_router(whatsapp_router)
    return app


app = create_app()
