from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation


@dataclass(frozen=True, slots=True)
class Settings:
    """Process configuration, read once from the environment at startup.

    Env vars:
    - DATABASE_URL (default: sqlite+pysqlite:///.local/grub.db)
    - GRUB_DB_AUTO_CREATE (default: true)
    - GRUB_JWT_SECRET (default: a dev-only secret)
    - GRUB_JWT_ALGORITHM (default: HS256)
    - GRUB_TAX_RATE_PERCENT (default: 5)
    - GRUB_DELIVERY_FEE_CENTS (default: 0)
    - GRUB_ESTIMATED_DELIVERY_MINUTES (default: 30)
    - GRUB_ORDER_NUMBER_PREFIX (default: GC)
    - GRUB_ORDER_NUMBER_MAX_ATTEMPTS (default: 3)
    - GRUB_LOG_LEVEL (default: INFO)
    """

    database_url: str
    db_auto_create: bool
    jwt_secret: str
    jwt_algorithm: str
    tax_rate_percent: Decimal
    delivery_fee_cents: int
    estimated_delivery_minutes: int
    order_number_prefix: str
    order_number_max_attempts: int
    log_level: str

    @classmethod
    def from_env(cls) -> "Settings":
        # Local-only defaults. Production must provide DATABASE_URL and GRUB_JWT_SECRET.
        database_url = os.getenv("DATABASE_URL", "sqlite+pysqlite:///.local/grub.db")
        jwt_secret = os.getenv("GRUB_JWT_SECRET", "grub-dev-secret-change-me")

        try:
            tax_rate_percent = Decimal(os.getenv("GRUB_TAX_RATE_PERCENT", "5").strip())
        except InvalidOperation as e:
            raise ValueError("GRUB_TAX_RATE_PERCENT must be a decimal number") from e

        settings = cls(
            database_url=database_url,
            db_auto_create=_parse_bool(os.getenv("GRUB_DB_AUTO_CREATE", "true")),
            jwt_secret=jwt_secret,
            jwt_algorithm=os.getenv("GRUB_JWT_ALGORITHM", "HS256").strip(),
            tax_rate_percent=tax_rate_percent,
            delivery_fee_cents=int(os.getenv("GRUB_DELIVERY_FEE_CENTS", "0")),
            estimated_delivery_minutes=int(os.getenv("GRUB_ESTIMATED_DELIVERY_MINUTES", "30")),
            order_number_prefix=os.getenv("GRUB_ORDER_NUMBER_PREFIX", "GC").strip(),
            order_number_max_attempts=int(os.getenv("GRUB_ORDER_NUMBER_MAX_ATTEMPTS", "3")),
            log_level=os.getenv("GRUB_LOG_LEVEL", "INFO").strip().upper(),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        if self.tax_rate_percent < 0:
            raise ValueError("GRUB_TAX_RATE_PERCENT must not be negative")
        if self.delivery_fee_cents < 0:
            raise ValueError("GRUB_DELIVERY_FEE_CENTS must not be negative")
        if self.estimated_delivery_minutes < 0:
            raise ValueError("GRUB_ESTIMATED_DELIVERY_MINUTES must not be negative")
        if self.order_number_max_attempts < 1:
            raise ValueError("GRUB_ORDER_NUMBER_MAX_ATTEMPTS must be at least 1")
        if not self.order_number_prefix.isalnum():
            raise ValueError("GRUB_ORDER_NUMBER_PREFIX must be alphanumeric")
        if not self.jwt_secret:
            raise ValueError("GRUB_JWT_SECRET must not be empty")


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "y"}
