from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=None, extra="ignore")

    # Runtime
    environment: str = Field(default="development", validation_alias="NODE_ENV")
    port: int = Field(default=8080, validation_alias="PORT")
    app_name: str = Field(default="UroCareerz", validation_alias="APP_NAME")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    # CORS / Frontend
    frontend_base_url: str = Field(
        default="http://localhost:3000", validation_alias="FRONTEND_BASE_URL"
    )
    frontend_url: str | None = Field(default=None, validation_alias="FRONTEND_URL")
    frontend_urls: str | None = Field(default=None, validation_alias="FRONTEND_URLS")

    # AWS / data
    aws_region: str = Field(default="us-east-1", validation_alias="AWS_REGION")
    ddb_table_name: str | None = Field(default=None, validation_alias="DDB_TABLE_NAME")
    ddb_endpoint_url: str | None = Field(default=None, validation_alias="DDB_ENDPOINT_URL")
    assets_bucket_name: str | None = Field(
        default=None, validation_alias="ASSETS_BUCKET_NAME"
    )

    # Sessions (HS256 cookie token)
    jwt_secret: str | None = Field(default=None, validation_alias="JWT_SECRET")
    session_ttl_hours: int = Field(default=24, validation_alias="SESSION_TTL_HOURS")
    # None means "secure only in production".
    cookie_secure: bool | None = Field(default=None, validation_alias="COOKIE_SECURE")

    # One-time codes
    otp_ttl_minutes: int = Field(default=10, validation_alias="OTP_TTL_MINUTES")

    # Pagination cursor encryption (falls back to JWT_SECRET)
    token_enc_key: str | None = Field(default=None, validation_alias="TOKEN_ENC_KEY")

    # Email (SES)
    email_from_address: str | None = Field(
        default=None, validation_alias="EMAIL_FROM_ADDRESS"
    )
    email_from_name: str = Field(default="UroCareerz", validation_alias="EMAIL_FROM_NAME")
    admin_notification_email: str | None = Field(
        default=None, validation_alias="ADMIN_NOTIFICATION_EMAIL"
    )

    @property
    def normalized_environment(self) -> str:
        v = (self.environment or "").strip().lower()
        return _ENV_ALIASES.get(v, v or "development")

    @property
    def is_production(self) -> bool:
        return self.normalized_environment == "production"

    @property
    def session_cookie_secure(self) -> bool:
        if self.cookie_secure is None:
            return self.is_production
        return bool(self.cookie_secure)

    def require_in_production(self) -> None:
        """Refuse to boot a production API that cannot sign sessions, store data or send codes."""
        if not self.is_production:
            return
        required = {
            "JWT_SECRET": self.jwt_secret,
            "DDB_TABLE_NAME": self.ddb_table_name,
            "ASSETS_BUCKET_NAME": self.assets_bucket_name,
            "EMAIL_FROM_ADDRESS": self.email_from_address,
        }
        missing = [name for name, value in required.items() if not _present(value)]
        if missing:
            raise RuntimeError(f"{self.app_name} production config is missing: {', '.join(missing)}")

    def to_log_safe_dict(self) -> dict[str, object]:
        # Secrets and addresses are reported as *_configured flags only.
        return {
            "environment": self.normalized_environment,
            "log_level": self.log_level,
            "cors_origins": [o for o in (self.frontend_base_url, self.frontend_url, self.frontend_urls) if o],
            "aws_region": self.aws_region,
            "ddb_table_name": self.ddb_table_name,
            "ddb_local": _present(self.ddb_endpoint_url),
            "assets_bucket_name": self.assets_bucket_name,
            "session_ttl_hours": self.session_ttl_hours,
            "otp_ttl_minutes": self.otp_ttl_minutes,
            "cookie_secure": self.session_cookie_secure,
            "jwt_secret_configured": _present(self.jwt_secret),
            "token_enc_key_configured": _present(self.token_enc_key),
            "email_sender_configured": _present(self.email_from_address),
            "admin_notification_email_configured": _present(self.admin_notification_email),
        }


_ENV_ALIASES = {
    "prod": "production",
    "production": "production",
    "stage": "staging",
    "staging": "staging",
    "dev": "development",
    "development": "development",
    "local": "development",
    "test": "development",
}


def _present(value: object) -> bool:
    return value is not None and str(value).strip() != ""


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    s = Settings()
    s.require_in_production()
    return s


settings = get_settings()
