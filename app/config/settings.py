from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List, Set


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_role_key: Optional[str] = None  # Required for writes to collection_access
    supabase_jwt_secret: Optional[str] = None  # When set, session tokens are verified locally instead of via Supabase Auth

    # Administrators (comma-separated)
    admin_user_ids: str = ""
    admin_emails: str = ""  # Legacy fallback for the single hard-coded superuser

    # Wallet credentials
    wallet_token_formats: str = "verified,signature,jwt"
    wallet_address_pattern: str = r"^[1-9A-HJ-NP-Za-km-z]{1,64}$"  # base58 alphabet
    wallet_signing_secret: Optional[str] = None  # Required for the verified and signature formats
    wallet_jwt_secret: Optional[str] = None  # Required for the jwt format
    wallet_jwt_algorithm: str = "HS256"
    wallet_signature_max_age_sec: int = 86400
    wallet_clock_skew_sec: int = 60

    # Access store
    access_store_retry_attempts: int = 3
    access_store_retry_backoff_sec: float = 0.1

    # App
    app_name: str = "storefront-access-backend"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_cors_origins_list(self) -> List[str]:
        return _split_csv(self.cors_origins)

    def get_admin_user_ids(self) -> Set[str]:
        return set(_split_csv(self.admin_user_ids))

    def get_admin_emails(self) -> Set[str]:
        return {e.lower() for e in _split_csv(self.admin_emails)}

    def get_wallet_token_formats(self) -> List[str]:
        return [f.lower() for f in _split_csv(self.wallet_token_formats)]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


def _split_csv(value: str) -> List[str]:
    return [v.strip() for v in (value or "").split(",") if v.strip()]


settings = Settings()
