"""
AIVox Dashboard - Main FastAPI Application
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from app import config
from app.auth import require_auth
from app.database import SessionLocal, init_db, shutdown_db, test_connection
from app.exceptions import register_exception_handlers
from app.retell_client import RetellClient
from app.superadmin import ensure_superadmin

# Import routers
from app.routers import agents, analytics, auth, calls, dashboard, search, users

logger = logging.getLogger(__name__)

STARTED_AT = datetime.now(timezone.utc)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build shared clients on startup, release them on shutdown"""
    logger.info(f"Starting {config.APP_NAME} ({config.ENVIRONMENT})")

    init_db()

    if config.RETELL_API_KEY:
        app.state.retell_client = RetellClient(config.RETELL_API_KEY)
    else:
        app.state.retell_client = None
        logger.warning("RETELL_API_KEY not set; sync endpoints are unavailable")

    db = SessionLocal()
    try:
        ensure_superadmin(db)
    except Exception as e:
        logger.error(f"Failed to bootstrap superadmin: {e}")
    finally:
        db.close()

    yield

    logger.info(f"Shutting down {config.APP_NAME}")
    if app.state.retell_client is not None:
        await app.state.retell_client.aclose()
    shutdown_db()


# Initialize FastAPI app
app = FastAPI(
    title=config.APP_NAME,
    description="AI receptionist dashboard: Retell call sync, history and analytics",
    version="1.0.0",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ALLOWED_ORIGINS if config.IS_PRODUCTION else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    client = request.client.host if request.client else None
    logger.info(f"{request.method} {request.url.path} (client={client}, "
                f"user_agent={request.headers.get('user-agent')})")
    return await call_next(request)


register_exception_handlers(app)

# Include routers
dashboard_auth = [Depends(require_auth)]
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(dashboard.router, prefix="/api/dashboard", tags=["Dashboard"], dependencies=dashboard_auth)
app.include_router(agents.router, prefix="/api/dashboard/agents", tags=["Agents"], dependencies=dashboard_auth)
app.include_router(calls.router, prefix="/api/dashboard/calls", tags=["Calls"], dependencies=dashboard_auth)
app.include_router(analytics.router, prefix="/api/dashboard/analytics", tags=["Analytics"], dependencies=dashboard_auth)
app.include_router(users.router, prefix="/api/dashboard/users", tags=["Users"], dependencies=dashboard_auth)
app.include_router(search.router, prefix="/api/dashboard/search", tags=["Search"], dependencies=dashboard_auth)


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    now = datetime.now(timezone.utc)
    return {
        "status": "healthy",
        "timestamp": now.isoformat(),
        "uptime": (now - STARTED_AT).total_seconds(),
    }

@app.get("/health/db")
async def database_health_check():
    """Database health check"""
    if test_connection():
        return {"status": "healthy", "database": "connected"}
    else:
        return {"status": "unhealthy", "database": "disconnected"}

@app.get("/health/api")
async def api_health_check(request: Request):
    """Retell API health check"""
    client = getattr(request.app.state, "retell_client", None)
    if client is None:
        return {"status": "unknown", "api": "no api key configured"}

    result = await client.test_connection()
    if result["success"]:
        return {"status": "healthy", "api": "connected"}
    else:
        return {"status": "unhealthy", "api": "connection failed"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=config.DEBUG
    )
