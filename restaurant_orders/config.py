from decimal import Decimal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "postgresql+asyncpg://postgres:postgres@db:5432/restaurant"
    log_level: str = "INFO"

    # Connection pool
    db_pool_size: int = 20
    db_pool_timeout: float = 10.0
    statement_timeout_ms: int = 30000

    # Pricing
    tax_rate: Decimal = Decimal("0.18")

    # Startup
    seed_demo_data: bool = True

    # Observability
    service_name: str = "restaurant-orders"
    environment: str = "development"
    tracing_enabled: bool = True
    otlp_endpoint: str = "http://jaeger:4318/v1/traces"

    model_config = {"env_file": ".env"}


settings = Settings()
