"""
Trailkeeper AI - FastAPI Application
Conversational trip planner with a learning feedback loop.
LLM Provider:
- If OPENAI_API_KEY is set: OpenAI chat completions (rate limited)
- Otherwise: the built-in fallback bank answers every phase
"""

import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from . import __version__
from .agents.trip_orchestrator import TripPlanningOrchestrator, get_orchestrator
from .api.chat import router as chat_router
from .config import settings


def configure_logging(level: Optional[str] = None):
    """Single stderr sink at the configured level"""
    logger.remove()
    logger.add(sys.stderr, level=(level or settings.LOG_LEVEL).upper())


# ============================================
# FastAPI Application
# ============================================

def create_app(orchestrator: Optional[TripPlanningOrchestrator] = None) -> FastAPI:
    """
    Build the application

    Args:
        orchestrator: Orchestrator to serve; defaults to the process-wide one
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler"""
        instance = orchestrator or get_orchestrator()
        app.state.orchestrator = instance

        logger.info("=" * 50)
        logger.info("Starting Trailkeeper AI")
        logger.info("=" * 50)
        logger.info(f"Environment: {settings.API_ENV}")
        logger.info(f"LLM Provider: {'OpenAI' if instance.gateway.live.available else 'fallback bank'}")
        if instance.gateway.live.available:
            logger.info(f"  Model: {instance.gateway.live.model}")
        logger.info(f"  Rate limit: {settings.RATE_LIMIT_REQUESTS} calls / {settings.RATE_LIMIT_WINDOW:g}s")
        logger.info(f"Store backend: {type(instance.kv_store).__name__}")

        await instance.load()
        logger.info(f"Restored {len(instance.interactions)} interactions")

        yield

        await instance.aclose()
        logger.info("Trailkeeper AI shutdown complete")

    app = FastAPI(
        title="Trailkeeper AI",
        description="Phase-driven conversational trip planner with feedback-weighted personalization.",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(chat_router)

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "service": "Trailkeeper AI",
            "version": __version__,
            "status": "running",
            "docs": "/docs",
            "endpoints": [
                "/api/ai/health",
                "/api/ai/chat",
                "/api/ai/feedback",
                "/api/ai/route-feedback",
                "/api/ai/routes/modify",
                "/api/ai/interactions",
                "/api/ai/sessions/{session_id}",
                "/api/ai/weights",
                "/api/ai/analytics"
            ]
        }

    return app


configure_logging()
app = create_app()


# ============================================
# Main
# ============================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "trailkeeper_ai.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.API_ENV == "development"
    )
