import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from prometheus_client import make_asgi_app

from restaurant_orders import __version__, models  # noqa: F401  models registers tables on Base.metadata
from restaurant_orders.config import settings
from restaurant_orders.database import Base, engine
from restaurant_orders.errors import register_error_handlers
from restaurant_orders.middleware.metrics import MetricsMiddleware
from restaurant_orders.middleware.request_id import RequestIDMiddleware
from restaurant_orders.routers import orders, tables
from restaurant_orders.services.seed import seed_demo_data
from restaurant_orders.tracing import setup_tracing
from restaurant_orders.utils.logging import setup_logging

setup_logging(settings.log_level)
logger = logging.getLogger(__name__)

if settings.tracing_enabled:
    setup_tracing(settings)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting up, creating database tables")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    if settings.tracing_enabled:
        SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)

    if settings.seed_demo_data:
        await seed_demo_data()
    logger.info("Startup complete")

    yield

    await engine.dispose()
    logger.info("Shutting down")


app = FastAPI(
    title="Restaurant Order Management",
    description="Order lifecycle, table occupancy and ingredient stock",
    version=__version__,
    lifespan=lifespan,
)

if settings.tracing_enabled:
    FastAPIInstrumentor.instrument_app(app)
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestIDMiddleware)
register_error_handlers(app)
app.include_router(orders.router, prefix="/orders", tags=["orders"])
app.include_router(tables.router, prefix="/tables", tags=["tables"])

# Expose Prometheus metrics at /metrics
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)


@app.get("/health", tags=["health"])
async def health():
    return {"status": "ok"}
