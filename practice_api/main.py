"""
Practice API - Main Application
Practice sessions, offline sample sessions and AI explanations
FILE: main.py
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
import time
from typing import Optional

from practice_api.api.explanations import router as explanations_router
from practice_api.api.practice_sessions import router as practice_router
from practice_api.bootstrap import ServiceContainer, build_container, close_container
from practice_api.core.config import Settings, get_settings
from practice_api.db.mongodb import ping_mongo
from practice_api.db.redis_client import ping_redis

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    container: Optional[ServiceContainer] = None
) -> FastAPI:
    """
    Build the application

    A pre-built `container` skips connecting to MongoDB and Redis and is
    left open on shutdown (tests pass one built over in-memory fakes).
    """
    settings = settings or (container.settings if container else get_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown events"""
        logger.info("🚀 Starting Practice API...")

        owns_container = container is None
        try:
            app.state.container = container or await build_container(settings)
        except Exception as e:
            logger.error(f"❌ Startup error: {e}")
            raise

        yield

        logger.info("🛑 Shutting down Practice API...")
        if owns_container:
            try:
                await close_container(app.state.container)
                logger.info("✓ Cleanup complete")
            except Exception as e:
                logger.error(f"❌ Shutdown error: {e}")

    app = FastAPI(
        title="Practice API",
        description="""
        Timed practice sessions with cached, rate-limited AI explanations.

        ## Endpoints
        - **Sessions**: `/api/practice/sessions/*` - start, read, update and delete practice sessions
        - **Sample**: `/api/practice/sample/{examSlug}` - offline sample session with local snapshots
        - **Explanations**: `/api/ai/explanations` - AI explanation for a question/answer pair
        - **Health**: `/health` - Overall service health check
        """,
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request timing middleware
    @app.middleware("http")
    async def add_process_time_header(request: Request, call_next):
        """Add processing time to response headers"""
        start_time = time.time()
        response = await call_next(request)
        process_time = (time.time() - start_time) * 1000  # Convert to ms
        response.headers["X-Process-Time-Ms"] = str(round(process_time, 2))
        return response

    # Request logging middleware
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all incoming requests"""
        logger.info(f"📨 {request.method} {request.url.path}")
        response = await call_next(request)
        logger.info(
            f"📤 {request.method} {request.url.path} - "
            f"Status: {response.status_code}"
        )
        return response

    # ==================== INCLUDE ROUTERS ====================

    app.include_router(practice_router, prefix="/api", tags=["Practice Sessions"])
    app.include_router(explanations_router, prefix="/api", tags=["AI Explanations"])

    # ==================== ROOT ENDPOINTS ====================

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint with API information"""
        return {
            "message": "Practice API",
            "version": "1.0.0",
            "status": "operational",
            "endpoints": {
                "docs": "/docs",
                "redoc": "/redoc",
                "sessions": "/api/practice/sessions",
                "sample": "/api/practice/sample/{examSlug}",
                "explanations": "/api/ai/explanations",
                "health": "/health"
            }
        }

    @app.get("/health", tags=["Health"])
    async def health_check(request: Request):
        """
        Health check for MongoDB, Redis and the completion provider

        Returns 503 when a store is unreachable. A missing provider key only
        means stub explanations are served, so it does not degrade the status.
        """
        services: ServiceContainer = request.app.state.container
        components = {}

        mongo_ok = services.mongo_client is not None and await ping_mongo(services.mongo_client)
        components["mongodb"] = {"status": "healthy" if mongo_ok else "unhealthy"}

        redis_ok = services.redis_client is not None and await ping_redis(services.redis_client)
        components["redis"] = {"status": "healthy" if redis_ok else "unhealthy"}

        components["completion_provider"] = {
            "status": "configured" if services.provider_configured else "stub",
            "model": services.settings.openai_model
        }

        overall_healthy = mongo_ok and redis_ok
        health_status = {
            "status": "healthy" if overall_healthy else "degraded",
            "timestamp": time.time(),
            "components": components,
            "api": {
                "title": app.title,
                "version": app.version,
                "status": "operational"
            }
        }

        return JSONResponse(
            status_code=200 if overall_healthy else 503,
            content=health_status
        )

    return app


app = create_app()


# ==================== RUN APPLICATION ====================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "practice_api.main:app",
        host="0.0.0.0",
        port=8080,
        reload=True,
        log_level="info"
    )
