from __future__ import annotations

from decimal import Decimal
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="BO_", extra="ignore")

    app_name: str = "Back-office Fulfillment Engine"
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "INFO"

    database_url: str = "sqlite+pysqlite:///./backoffice.db"
    db_lock_timeout_seconds: int = 30
    db_statement_timeout_ms: int = 15000

    bootstrap_demo_on_startup: bool = False
    demo_organization_id: str = "org-demo"

    free_shipping_threshold: int = Field(default=5500, description="int minor units")
    flat_shipping_fee: int = Field(default=500, description="int minor units")
    tax_rate: Decimal = Decimal("0.10")

    order_number_prefix: str = "ORD"
    order_number_timezone: str = "UTC"
    order_number_max_attempts: int = 20
    conflict_retry_attempts: int = 1

    default_actor_name: str = "admin"
    refund_requires_captured_payment: bool = False

    default_low_stock_threshold: int = 5
    movements_page_size: int = 50

    def model_post_init(self, __context) -> None:
        problems: list[str] = []
        if not Decimal("0") <= self.tax_rate < Decimal("1"):
            problems.append("BO_TAX_RATE must be within [0, 1)")
        if self.free_shipping_threshold < 0:
            problems.append("BO_FREE_SHIPPING_THRESHOLD must be >= 0")
        if self.flat_shipping_fee < 0:
            problems.append("BO_FLAT_SHIPPING_FEE must be >= 0")
        if self.conflict_retry_attempts < 0:
            problems.append("BO_CONFLICT_RETRY_ATTEMPTS must be >= 0")
        if self.order_number_max_attempts < 1:
            problems.append("BO_ORDER_NUMBER_MAX_ATTEMPTS must be >= 1")
        try:
            ZoneInfo(self.order_number_timezone)
        except (ZoneInfoNotFoundError, ValueError):
            problems.append(f"unknown BO_ORDER_NUMBER_TIMEZONE: {self.order_number_timezone}")

        if problems:
            raise ValueError("invalid settings: " + "; ".join(problems))

    @property
    def order_number_zone(self) -> ZoneInfo:
        return ZoneInfo(self.order_number_timezone)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
