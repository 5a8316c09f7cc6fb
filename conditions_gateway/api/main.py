"""FastAPI application factory"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from conditions_gateway.api.dependencies import Services, build_services
from conditions_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from conditions_gateway.api.v1 import conditions, transactions
from conditions_gateway.infrastructure.observability.logging import setup_logging
from conditions_gateway.config import Settings, settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app(app_settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    """Create and configure FastAPI application"""
    app_settings = app_settings or settings
    services = services or build_services(app_settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await services.http_client.aclose()

    app = FastAPI(
        title="Installment Conditions Gateway",
        description="Resilient installment conditions lookup for checkout",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.services = services

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": app_settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(conditions.router, prefix="/v1", tags=["conditions"])
    app.include_router(transactions.router, prefix="/v1", tags=["transactions"])

    return app


app = create_app()
