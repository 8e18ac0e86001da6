from contextlib import asynccontextmanager

from fastapi import FastAPI
from app.config import settings
from app.api.v1.api import api_router
from app.api.v1.endpoints import storefront
from app.middleware.request_logging import RequestLoggingMiddleware
from app.middleware.metrics import PrometheusMiddleware, metrics_endpoint, set_app_info
from app.middleware.custom_domain import CustomDomainMiddleware
from app.logging_config import setup_logging
from app.services.domain_provisioning import provisioning_orchestrator

# ── Initialize structured logging ──
setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Let in-flight certificate registrations finish before shutdown
    await provisioning_orchestrator.wait_for_background()


app = FastAPI(
    title=settings.APP_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)

# Custom domain routing – classifies Host, rewrites tenant domains into /stores/<slug>
app.add_middleware(CustomDomainMiddleware)

# Prometheus metrics middleware – request count, latency, in-progress
app.add_middleware(PrometheusMiddleware)

# Request logging middleware – request ID, timing, context (outermost)
app.add_middleware(RequestLoggingMiddleware)

app.include_router(api_router, prefix=settings.API_V1_STR)
app.include_router(storefront.router, prefix=f"/{settings.TENANT_NAMESPACE}", tags=["storefront"])

@app.get("/")
def root():
    return {"message": f"Welcome to {settings.APP_NAME}", "docs": "/docs"}

@app.get("/health")
def health_check():
    return {"status": "ok", "env": settings.APP_ENV}

# Prometheus metrics endpoint
app.add_route("/metrics", metrics_endpoint)
set_app_info(version="1.0.0", env=settings.APP_ENV)
