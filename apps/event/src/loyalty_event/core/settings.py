from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="allow")

    environment: Literal["development", "staging", "production"] = "development"

    # Commerce platform (commercetools-style) credentials
    ctp_project_key: str = ""
    ctp_client_id: str = ""
    ctp_client_secret: str = ""
    ctp_scope: str = ""
    ctp_auth_url: str = "https://auth.europe-west1.gcp.commercetools.com"
    ctp_api_url: str = "https://api.europe-west1.gcp.commercetools.com"
    ctp_timeout_seconds: float = 10.0
    ctp_token_refresh_margin_seconds: int = 60

    # Loyalty storage keys
    loyalty_container: str = "LOYALTY_CONTAINER"
    loyalty_conversion_rates_key: str = "CONVERSION_RATES"
    loyalty_redemption_rates_key: str = "REDEMPTION_RATES"
    loyalty_available_points_field: str = "availablePoints"
    loyalty_customer_type_key: str = "additional-customer-info"
    loyalty_cancelled_state_key: str = "Cancelled"

    # Balance write retries on version conflicts
    loyalty_max_update_attempts: int = Field(default=3, ge=1)

    # Processed-event ledger (opt-in duplicate suppression)
    loyalty_ledger_enabled: bool = False
    loyalty_ledger_container: str = "LOYALTY_PROCESSED_EVENTS"

    # Internal API security
    observability_api_key: str = ""

    @field_validator("ctp_auth_url", "ctp_api_url", mode="before")
    @classmethod
    def _strip_trailing_slash(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().rstrip("/")
        return value

    @property
    def ctp_scopes(self) -> list[str]:
        return [item for item in self.ctp_scope.split() if item]


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]


settings = get_settings()
