"""TNKR application factory.

Learn: create_app() wires four things onto a FastAPI instance:
1. lifespan: Redis connect/close, email drain, engine dispose
2. one handler turning ServiceError into {"detail": ..., **extra}
3. the HTTP middleware stack
4. the REST routers plus the /ws messaging socket

`app` at the bottom is what uvicorn serves (tnkr.main:app).
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tnkr import __version__
from tnkr.api import api_router
from tnkr.config import settings
from tnkr.errors import ServiceError

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    from tnkr.cache.client import close_redis, init_redis
    from tnkr.db.engine import engine
    from tnkr.notifications.mailer import get_email_dispatcher

    logger.info("tnkr.starting", version=__version__, environment=settings.environment)

    try:
        await init_redis()
    except Exception as e:
        # Redis is optional: no cache, message rate limiter fails open
        logger.warning("tnkr.redis_unavailable", url=settings.redis_url, error=str(e))
    else:
        logger.info("tnkr.redis_connected", url=settings.redis_url)

    yield

    logger.info("tnkr.stopping")
    # Queued verification/reset emails get to finish
    await get_email_dispatcher().drain()
    await close_redis()
    await engine.dispose()


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("api.dependency_failure", path=request.url.path, error=exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, **exc.extra},
    )


def _install_middleware(app: FastAPI) -> None:
    """Register HTTP middleware.

    Starlette runs middleware in reverse registration order, so a
    request passes CORS, then RateLimit, then Security, then RequestId.
    """
    from tnkr.middleware.rate_limit import RateLimitMiddleware
    from tnkr.middleware.request_id import RequestIdMiddleware
    from tnkr.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def create_app() -> FastAPI:
    from tnkr.realtime.websocket import router as ws_router

    app = FastAPI(
        title="TNKR",
        description="Marketplace backend connecting sneaker owners with repair technicians",
        version=__version__,
        lifespan=lifespan,
    )
    app.add_exception_handler(ServiceError, service_error_handler)
    _install_middleware(app)
    app.include_router(api_router)
    app.include_router(ws_router)
    return app


app = create_app()
