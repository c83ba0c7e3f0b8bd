"""Service configuration, read from DATAMARKET_* environment variables or a .env file."""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from datamarket.models import DEFAULT_FEE_BPS, MAX_FEE_BPS


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="DATAMARKET_",
        env_file_encoding="utf-8",
    )

    # Fixed administrator identity; may change the fee and revoke access
    admin: str = "market-admin"
    # Account credited with the marketplace fee; the administrator when unset
    fee_recipient: Optional[str] = None
    default_fee_bps: int = Field(default=DEFAULT_FEE_BPS, ge=0, le=MAX_FEE_BPS)

    log_level: str = "INFO"
    seed_on_startup: bool = True

    @property
    def fee_account(self) -> str:
        return self.fee_recipient or self.admin


settings = Settings()
