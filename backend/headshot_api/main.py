from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from headshot_api.middleware.logging_middleware import RequestLoggingMiddleware
from headshot_api.routers import router as api_router
from headshot_api.service_container import Services
from headshot_api.utils.fastapi_utils import install_exception_handlers
from headshot_common.core.config_service import config_service, settings
from headshot_common.core.request_context import RequestContext
from headshot_common.logging import setup_logging
from headshot_common.utils.utils import get_logger
from headshot_db.db.init_db import init_db

# ConfigService has already loaded the .env file, so LOG_LEVEL and LOG_JSON_FORMAT are visible here
setup_logging()

logger = get_logger()


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncGenerator[None, Any]:
    logger.info("Starting application database setup")

    success = await init_db()
    if success:
        logger.info("Database setup completed successfully", service="database", status="initialized")
    else:
        logger.error("Database setup failed", service="database", status="failed")
        raise RuntimeError("Failed to initialize database")

    services = Services.instance()
    await services.start()

    yield

    logger.info("Application shutting down")
    await services.stop()


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Credits, checkout and headshot generation API",
    version="1.0.0",
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# 1. Request logging middleware
app.add_middleware(RequestLoggingMiddleware)

# 2. CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Sets up a RequestContext for every request. Added last so it runs outermost."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        with RequestContext.context(trigger="http") as request_context:
            request_context.endpoint = str(request.url.path)
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_context.request_id
            return response


app.add_middleware(RequestContextMiddleware)

install_exception_handlers(app)

app.include_router(api_router)


@app.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    host = config_service.get("host", "0.0.0.0")
    port = int(config_service.get("port", 9998))

    logger.info("Starting application server", host=host, port=port, environment=config_service.get_environment())

    uvicorn.run(app, host=host, port=port)
