from __future__ import annotations

import json
import os
from decimal import Decimal
from functools import lru_cache
from typing import Annotated, Any, Dict, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


# ================================
# HELPERS
# ================================
def _under_pytest() -> bool:
    return "PYTEST_CURRENT_TEST" in os.environ


def _mask_secret(val: Optional[str]) -> Optional[str]:
    if val is None:
        return None
    s = str(val)
    if not s:
        return s
    if len(s) <= 6:
        return "***"
    return s[:3] + "***" + s[-3:]


def _is_secret_key_name(key: str) -> bool:
    lk = key.lower()
    return any(s in lk for s in ("secret", "password", "token", "dsn"))


def _parse_list_like(v):
    if isinstance(v, str):
        v = v.strip()
        if v.startswith("[") and v.endswith("]"):
            parsed = json.loads(v)
            if isinstance(parsed, list):
                return [str(i).strip() for i in parsed if str(i).strip()]
        return [i.strip() for i in v.split(",") if i.strip()]
    return v


# ================================
# APPLICATION SETTINGS (Pydantic v2)
# ================================
class Settings(BaseSettings):
    """
    Configuration layer for the PrintShop order service.

    - Values come from the environment, then `.env`.
    - Pricing and payment-window knobs are read once and handed to the
      catalog and lifecycle engine at startup; nothing mutates them later.
    - Secrets are masked in `dump_settings_safe()`.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    # ---- base
    PROJECT_NAME: str = Field(default="PrintShop", description="Project name")
    VERSION: str = Field(default="0.1.0", description="Application version")
    ENVIRONMENT: str = Field(default="development", description="Environment")
    DEBUG: bool = Field(default=False, description="Debug mode")
    API_PREFIX: str = Field(default="/api", description="API prefix")
    HOST: str = Field(default="127.0.0.1", description="Server host")
    PORT: int = Field(default=4000, description="Server port")
    PUBLIC_BASE_URL: Optional[str] = Field(default=None, description="Public URL used in payment links")

    # ---- database
    DATABASE_URL: str = Field(default="sqlite:///./printshop.db", description="Database URL")
    SQLALCHEMY_ECHO: bool = Field(default=False, description="Echo SQL statements")

    # ---- logging
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: str = Field(default="console", description="Logging format (json|console)")

    # ---- pricing
    CURRENCY: str = Field(default="IDR", description="Currency code of all amounts")
    CURRENCY_MINOR_UNITS: int = Field(default=0, ge=0, le=4, description="Digits kept after rounding")
    CLIENT_TAX_RATE: Decimal = Field(default=Decimal("0"), ge=0, description="Tax rate on client orders")
    PURCHASE_TAX_RATE: Decimal = Field(default=Decimal("0.11"), ge=0, description="Tax rate on admin purchases")

    # ---- payment gate
    PAYMENT_WINDOW_MINUTES: int = Field(default=60, gt=0, description="Prepaid payment window")
    REQUIRE_CLIENT_APPROVAL: bool = Field(default=True, description="Only approved clients may order")
    DEFAULT_WHITELISTED_VENDORS: Annotated[List[str], NoDecode] = Field(default=["kubus", "fma"], description="Seeded whitelist")

    # ---- expiry sweeper
    EXPIRY_SWEEP_ENABLED: bool = Field(default=True, description="Run the expiry sweeper on startup")
    EXPIRY_SWEEP_INTERVAL_SECONDS: int = Field(default=30, gt=0, description="Seconds between sweeps")
    SCHEDULER_TIMEZONE: str = Field(default="UTC", description="Scheduler timezone")

    # --------- validators ---------
    @field_validator("DEFAULT_WHITELISTED_VENDORS", mode="before")
    def _vendors(cls, v):
        v = _parse_list_like(v)
        if isinstance(v, list):
            return [str(i).strip().lower() for i in v if str(i).strip()]
        return v

    @field_validator("PUBLIC_BASE_URL", mode="before")
    def _public_base_url(cls, v):
        if not v:
            return None
        return str(v).strip().rstrip("/")

    @field_validator("LOG_FORMAT")
    def _log_format(cls, v: str) -> str:
        v = (v or "").strip().lower()
        if v not in {"json", "console"}:
            raise ValueError(f"Unsupported LOG_FORMAT: {v}")
        return v

    # --------- properties ---------
    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def is_testing(self) -> bool:
        return self.ENVIRONMENT.lower() in {"test", "testing"} or _under_pytest()

    @property
    def public_url(self) -> str:
        if self.PUBLIC_BASE_URL:
            return self.PUBLIC_BASE_URL
        return f"http://{self.HOST}:{int(self.PORT)}"

    def dump_settings_safe(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for k, v in self.model_dump().items():
            if _is_secret_key_name(k) or k == "DATABASE_URL":
                out[k] = _mask_secret(str(v)) if v is not None else None
            elif isinstance(v, Decimal):
                out[k] = str(v)
            else:
                out[k] = v
        return out


@lru_cache
def get_settings() -> Settings:
    return Settings()


__all__ = ["Settings", "get_settings"]
