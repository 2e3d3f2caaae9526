from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import traceback

from sqlalchemy import select, text

from fra_patta.core.config import settings
from fra_patta.core.database import get_engine, get_session_local, Base, close_db
from fra_patta.core.exceptions import FraPattaError, error_response
from fra_patta.core.logging_config import logger
from fra_patta.core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from fra_patta.core.rate_limiter import limiter, rate_limit_exceeded_handler
from fra_patta.core.security import get_password_hash
from fra_patta.api.v1.router import api_router
from fra_patta.models.user import User, UserRole
from fra_patta.services.storage_service import storage_service
from slowapi.errors import RateLimitExceeded
import fra_patta.models  # Import models so metadata knows about them


APP_VERSION = "1.0.0"


async def validate_critical_config():
    """Validate critical configuration at startup - fail fast if missing"""
    errors = []
    warnings = []

    if not settings.DATABASE_URL:
        errors.append("DATABASE_URL is not set")

    if not settings.SECRET_KEY or settings.SECRET_KEY == "CHANGE_ME":
        errors.append("SECRET_KEY is not set or using default value")

    if not settings.JWT_SECRET_KEY or settings.JWT_SECRET_KEY == "CHANGE_ME":
        errors.append("JWT_SECRET_KEY is not set or using default value")

    if not (settings.SMTP_USER and settings.SMTP_PASSWORD):
        warnings.append("SMTP credentials not set - notifications will only be logged")

    if not settings.DEFAULT_MINISTRY_PASSWORD:
        warnings.append("DEFAULT_MINISTRY_PASSWORD not set - default ministry account will not be seeded")

    if errors:
        for err in errors:
            logger.critical(f"[Startup] CRITICAL: {err}")
        raise RuntimeError(f"Missing critical configuration: {', '.join(errors)}")

    for warn in warnings:
        logger.warning(f"[Startup] WARNING: {warn}")

    logger.info("[Startup] Critical configuration validated")
    return True


async def ensure_database_ready():
    """Create missing tables; an unreachable database aborts startup"""
    try:
        engine = get_engine()
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            await conn.run_sync(Base.metadata.create_all)
    except Exception as e:
        logger.critical(f"[Startup] Database not reachable: {e}")
        raise RuntimeError(f"Database not reachable: {e}") from e

    logger.info("[Startup] Database tables ready")
    return True


async def seed_default_ministry_user():
    """Create the default ministry account when it is missing"""
    if not settings.DEFAULT_MINISTRY_PASSWORD:
        return None

    session_factory = get_session_local()
    async with session_factory() as session:
        existing = (
            await session.execute(select(User).where(User.email == settings.DEFAULT_MINISTRY_EMAIL))
        ).scalar_one_or_none()
        if existing:
            return existing

        user = User(
            email=settings.DEFAULT_MINISTRY_EMAIL,
            hashed_password=get_password_hash(settings.DEFAULT_MINISTRY_PASSWORD),
            role=UserRole.MINISTRY,
            is_approved=True,
            is_active=True,
            name=settings.DEFAULT_MINISTRY_NAME,
            organization=settings.DEFAULT_MINISTRY_ORGANIZATION,
        )
        session.add(user)
        await session.commit()
        logger.info(f"[Startup] Seeded default ministry user {user.email}")
        return user


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown"""
    logger.info("=" * 60)
    logger.info(f"Starting {settings.APP_NAME}...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"API Version: {settings.API_VERSION}")
    logger.info("=" * 60)

    await validate_critical_config()
    await ensure_database_ready()
    await seed_default_ministry_user()

    storage_service.ensure_directories()
    logger.info(f"Upload directory: {storage_service.base_dir.resolve()}")

    yield

    logger.info(f"Shutting down {settings.APP_NAME}...")
    await close_db()


app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    redirect_slashes=False
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# Middleware order matters - last added runs first
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Response-Time", "Content-Disposition"],
)


@app.exception_handler(FraPattaError)
async def platform_error_handler(request: Request, exc: FraPattaError):
    if exc.status_code >= 500:
        logger.log_error_with_context(exc, context=f"{request.method} {request.url.path}")
    else:
        logger.warning(
            f"{request.method} {request.url.path} - {exc.code}: {exc.message}",
            extra={"event_type": "request_rejected", "error_code": exc.code}
        )
    return JSONResponse(status_code=exc.status_code, content=error_response(exc))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global exception: {exc}", exc_info=True)
    content = {
        "detail": "Internal server error",
        "message": str(exc) if settings.DEBUG else "An error occurred"
    }
    if settings.ENVIRONMENT != "production":
        content["traceback"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
    return JSONResponse(status_code=500, content=content)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "app_name": settings.APP_NAME,
        "version": APP_VERSION,
        "environment": settings.ENVIRONMENT
    }


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": APP_VERSION,
        "docs": "/docs",
        "health": "/health"
    }


app.include_router(api_router, prefix=f"/api/{settings.API_VERSION}")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "fra_patta.main:app",
        host=settings.SERVER_HOST,
        port=settings.SERVER_PORT,
        reload=settings.DEBUG
    )
