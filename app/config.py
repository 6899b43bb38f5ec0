"""All settings, loaded from the .env file."""
import os

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # App
    app_url: str = "http://localhost:8000"
    log_level: str = "INFO"
    cors_origins: str = "*"

    # Vendor (Shopify Admin REST)
    shopify_store_domain: str = ""
    shopify_admin_token: str = ""
    shopify_api_version: str = "2024-01"
    shopify_location_id: str = ""

    # Record store: "rest" (Supabase / PostgREST) or "sql" (local SQLAlchemy DB)
    store_backend: str = "rest"
    supabase_url: str = ""
    supabase_service_role_key: str = ""
    database_url: str = "sqlite:///./inventory.db"

    # Reconciliation behavior
    sync_batch_size: int = 50
    inter_batch_delay_seconds: float = 2.0
    vendor_max_attempts: int = 5
    backoff_base_seconds: float = 1.0
    backoff_max_seconds: float = 30.0
    backoff_jitter_seconds: float = 1.0
    vendor_max_retry_after_seconds: float = 60.0
    vendor_page_limit: int = 250
    vendor_timeout_seconds: float = 30

    # Operations
    manual_refresh_cooldown_seconds: int = 300
    scheduler_enabled: bool = True

    @property
    def uses_rest_store(self) -> bool:
        return self.store_backend.lower() != "sql"

    @property
    def scheduler_active(self) -> bool:
        return self.scheduler_enabled and not os.environ.get("TESTING")

    def missing_vendor_config(self) -> list[str]:
        """Names of required vendor settings that are empty."""
        required = {
            "SHOPIFY_STORE_DOMAIN": self.shopify_store_domain,
            "SHOPIFY_ADMIN_TOKEN": self.shopify_admin_token,
        }
        return [name for name, value in required.items() if not value]

    def missing_store_config(self) -> list[str]:
        if not self.uses_rest_store:
            return []
        required = {
            "SUPABASE_URL": self.supabase_url,
            "SUPABASE_SERVICE_ROLE_KEY": self.supabase_service_role_key,
        }
        return [name for name, value in required.items() if not value]


settings = Settings()
