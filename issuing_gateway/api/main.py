"""FastAPI application factory"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from issuing_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from issuing_gateway.api.v1 import authorizations, policy, webhooks
from issuing_gateway.config import settings
from issuing_gateway.domain.models import PolicyConfig
from issuing_gateway.infrastructure.database.models import Base
from issuing_gateway.infrastructure.database.session import engine
from issuing_gateway.infrastructure.event_log import EventLog
from issuing_gateway.infrastructure.observability.logging import setup_logging
from issuing_gateway.infrastructure.policy_store import PolicyStore, load_initial_policy

# Setup structured logging
setup_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the decision history table on startup"""
    Base.metadata.create_all(bind=engine)
    yield


def create_app(policy_config: PolicyConfig | None = None, create_tables: bool = True) -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Issuing Authorization Gateway",
        description="Real-time card authorization decisions for issuing webhooks",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan if create_tables else None,
    )

    # Shared, read-mostly state; evaluations take a snapshot of the policy
    app.state.policy_store = PolicyStore(policy_config or load_initial_policy())
    app.state.event_log = EventLog(settings.event_log_capacity)

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(webhooks.router, prefix="/v1", tags=["webhooks"])
    app.include_router(authorizations.router, prefix="/v1", tags=["authorizations"])
    app.include_router(policy.router, prefix="/v1", tags=["policy"])

    return app


app = create_app()
