import asyncio
import logging
import time
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .core.config import settings
from .core.rate_limit import limiter
from .db.database import init_db, AsyncSessionLocal
from .api.api_v1.api import api_router
from .middleware.tenant_middleware import TenantMiddleware

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


async def _seed_compensation_plans():
    from .services.incentive_service import IncentiveService

    try:
        async with AsyncSessionLocal() as session:
            created = await IncentiveService.seed_default_plans(session)
            await session.commit()
    except Exception as e:
        logger.warning(f"Compensation plan seeding skipped: {e}")
        return
    if created:
        logger.info(f"Seeded {created} compensation plan(s)")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.ENVIRONMENT == "development":
        await init_db()
    await _seed_compensation_plans()

    scheduler_task = None
    if settings.SCHEDULER_ENABLED:
        from .services.scheduler import scheduler_loop
        scheduler_task = asyncio.create_task(scheduler_loop())
        logger.info(f"Scheduler started, interval {settings.SCHEDULER_INTERVAL_SECONDS}s")

    yield

    if scheduler_task is not None:
        scheduler_task.cancel()


def _health():
    return {"status": "healthy", "version": settings.VERSION}


def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.APP_NAME,
        version=settings.VERSION,
        description="Multi-tenant platform for youth sports camp licensees",
        openapi_url="/api/v1/openapi.json",
        docs_url="/api/v1/docs",
        redoc_url="/api/v1/redoc",
        lifespan=lifespan,
    )

    application.state.limiter = limiter
    application.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    # Resolves licensee vs HQ context from headers or subdomain
    application.add_middleware(TenantMiddleware)

    @application.middleware("http")
    async def timing_header(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        response.headers["X-Process-Time"] = f"{time.perf_counter() - started:.4f}"
        return response

    @application.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        content = {"detail": "Internal server error"}
        if settings.DEBUG:
            content["error"] = str(exc)
            content["traceback"] = traceback.format_exc()
        return JSONResponse(status_code=500, content=content)

    @application.get("/", include_in_schema=False)
    async def root():
        return RedirectResponse(url="/api/v1/docs")

    application.add_api_route("/health", _health, methods=["GET"])
    application.add_api_route("/api/v1/health", _health, methods=["GET"])
    application.include_router(api_router, prefix="/api/v1")
    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "camphub.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
