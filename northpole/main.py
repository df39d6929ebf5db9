"""
North Pole Chat — FastAPI entry point.
"""

from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from northpole.config import Settings, settings as default_settings
from northpole.limiter import build_limiter
from northpole.models.database import build_engine, build_sessionmaker, init_db
from northpole.services.santa_service import SantaGenerator, build_generator
from northpole.services.voice_service import (
    VoiceInput, VoiceOutput, build_voice_input, build_voice_output,
)
from northpole.middleware.error_handler import global_exception_handler, validation_exception_handler
from northpole.middleware.logging_middleware import logging_middleware

# ── Routes ───────────────────────────────────────────────
from northpole.routes.auth import router as auth_router
from northpole.routes.chat import router as chat_router
from northpole.routes.wishlist import router as wishlist_router
from northpole.routes.children import router as children_router


def create_app(
    settings: Optional[Settings] = None,
    generator: Optional[SantaGenerator] = None,
    voice_input: Optional[VoiceInput] = None,
    voice_output: Optional[VoiceOutput] = None,
) -> FastAPI:
    """Build the app with its collaborators; tests pass fakes for any of them."""
    settings = settings or default_settings
    engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)

    # ── Lifespan ─────────────────────────────────────────
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
        await init_db(engine)
        logger.info("Database initialized")
        yield
        await engine.dispose()
        logger.info("Shutting down")

    # ── App ──────────────────────────────────────────────
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Chat with Santa and keep a holiday wishlist",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.engine = engine
    app.state.sessionmaker = build_sessionmaker(engine)
    app.state.generator = generator or build_generator(settings)
    app.state.voice_input = voice_input or build_voice_input(settings)
    app.state.voice_output = voice_output or build_voice_output(settings)

    # ── Rate Limiter ─────────────────────────────────────
    app.state.limiter = build_limiter(settings)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    # ── CORS ─────────────────────────────────────────────
    origins = settings.CORS_ORIGINS.split(",") if settings.CORS_ORIGINS != "*" else ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Custom Middleware ────────────────────────────────
    app.middleware("http")(global_exception_handler)
    app.middleware("http")(logging_middleware)

    # ── Register Routers ─────────────────────────────────
    app.include_router(auth_router)
    app.include_router(chat_router)
    app.include_router(wishlist_router)
    app.include_router(children_router)

    # ── Health Check ─────────────────────────────────────
    @app.get("/api/health", tags=["health"])
    async def health():
        return {
            "status": "ok",
            "app": settings.APP_NAME,
            "version": settings.APP_VERSION,
        }

    return app


app = create_app()


# ── Run ──────────────────────────────────────────────────
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "northpole.main:app",
        host=default_settings.HOST,
        port=default_settings.PORT,
        reload=default_settings.DEBUG,
        log_level="info",
    )
