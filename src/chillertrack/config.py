from __future__ import annotations

from decimal import Decimal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    state_db_path: str = Field(default="chillertrack_state.db", alias="STATE_DB_PATH")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    kangaroo_price_per_kg: Decimal = Field(default=Decimal("2.50"), alias="KANGAROO_PRICE_PER_KG")
    goat_price_per_kg: Decimal = Field(default=Decimal("3.00"), alias="GOAT_PRICE_PER_KG")
    commission_per_kg: Decimal = Field(default=Decimal("0.50"), alias="COMMISSION_PER_KG")
    gst_rate: Decimal = Field(default=Decimal("0.10"), alias="GST_RATE")

    ledger_conflict_detection: bool = Field(default=False, alias="LEDGER_CONFLICT_DETECTION")
    totals_decimal_places: int = Field(default=4, alias="TOTALS_DECIMAL_PLACES")

    @field_validator("kangaroo_price_per_kg", "goat_price_per_kg", "commission_per_kg")
    def validate_non_negative_price(cls, value: Decimal) -> Decimal:
        if value < 0:
            raise ValueError("per-kg prices must be >= 0")
        return value

    @field_validator("gst_rate")
    def validate_gst_rate(cls, value: Decimal) -> Decimal:
        if value < 0 or value > 1:
            raise ValueError("GST_RATE must be between 0 and 1")
        return value

    @field_validator("totals_decimal_places")
    def validate_totals_decimal_places(cls, value: int) -> int:
        if value < 0 or value > 12:
            raise ValueError("TOTALS_DECIMAL_PLACES must be between 0 and 12")
        return value

    @field_validator("state_db_path")
    def validate_state_db_path(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("STATE_DB_PATH cannot be empty")
        return value.strip()
