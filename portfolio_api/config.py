import json
import os
import threading
from urllib.parse import urlparse

from dotenv import load_dotenv
from pydantic import BaseModel, Field


load_dotenv()


def _parse_bool(name: str, default: bool) -> bool:
    raw_value = os.getenv(name, str(default)).strip().lower()
    if raw_value in {"1", "true", "yes", "on"}:
        return True
    if raw_value in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"{name} must be a boolean value")


def _parse_positive_int(name: str, default: int, *, allow_zero: bool = False) -> int:
    raw_value = os.getenv(name, "").strip()
    if not raw_value:
        return default
    try:
        value = int(raw_value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc
    if value < 0 or (value == 0 and not allow_zero):
        qualifier = "greater than or equal to 0" if allow_zero else "greater than 0"
        raise ValueError(f"{name} must be {qualifier}")
    return value


def _optional(name: str) -> str | None:
    value = os.getenv(name, "").strip()
    return value or None


def _parse_allowed_origins(raw_allowed_origins: str) -> list[str]:
    # Support both CSV format and JSON array format
    if raw_allowed_origins.startswith("["):
        try:
            parsed_list = json.loads(raw_allowed_origins)
        except json.JSONDecodeError as exc:
            raise ValueError(f"ALLOWED_ORIGINS JSON is malformed: {exc}") from exc
        if not isinstance(parsed_list, list):
            raise ValueError("ALLOWED_ORIGINS JSON must be an array")
        allowed_origins = [
            origin.strip() for origin in parsed_list if isinstance(origin, str) and origin.strip()
        ]
    else:
        allowed_origins = [
            origin.strip() for origin in raw_allowed_origins.split(",") if origin.strip()
        ]

    if not allowed_origins:
        raise ValueError("ALLOWED_ORIGINS must contain at least one origin")

    if "*" in allowed_origins:
        raise ValueError(
            "ALLOWED_ORIGINS cannot contain '*' when credentialed requests are used"
        )

    for origin in allowed_origins:
        parsed = urlparse(origin)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError(
                "ALLOWED_ORIGINS must contain valid http/https origins with host"
            )
    return allowed_origins


class Settings(BaseModel):
    app_name: str = Field(default="Portfolio API")
    debug: bool = Field(default=False)
    database_url: str = Field(default="")
    redis_url: str = Field(default="redis://localhost:6379/0")
    allowed_origins: list[str] = Field(default_factory=list)
    db_pool_size: int = Field(default=5)
    db_max_overflow: int = Field(default=10)
    db_pool_recycle: int = Field(default=1800)
    db_pool_pre_ping: bool = Field(default=True)

    core_admin_email: str = Field(default="")
    frontend_url: str = Field(default="http://localhost:3000")
    invitation_ttl_days: int = Field(default=7)

    identity_jwks_url: str | None = Field(default=None)
    identity_jwt_secret: str | None = Field(default=None)
    identity_jwt_algorithm: str = Field(default="HS256")
    identity_jwt_audience: str | None = Field(default=None)
    identity_jwt_issuer: str | None = Field(default=None)

    cloudinary_cloud_name: str | None = Field(default=None)
    cloudinary_api_key: str | None = Field(default=None)
    cloudinary_api_secret: str | None = Field(default=None)

    resend_api_key: str | None = Field(default=None)
    invite_email_from: str = Field(default="Portfolio Admin <onboarding@resend.dev>")

    invite_rate_limit_attempts: int = Field(default=20)
    invite_rate_limit_window_seconds: int = Field(default=300)

    @property
    def file_storage_enabled(self) -> bool:
        return bool(
            self.cloudinary_cloud_name
            and self.cloudinary_api_key
            and self.cloudinary_api_secret
        )

    @classmethod
    def from_env(cls) -> "Settings":
        core_admin_email = os.getenv("ADMIN_EMAIL", "").strip().lower()
        if not core_admin_email:
            raise ValueError("ADMIN_EMAIL environment variable must be set")
        if "@" not in core_admin_email:
            raise ValueError("ADMIN_EMAIL must be a valid email address")

        raw_allowed_origins = os.getenv("ALLOWED_ORIGINS", "").strip()
        if not raw_allowed_origins:
            raise ValueError("ALLOWED_ORIGINS environment variable must be set")
        allowed_origins = _parse_allowed_origins(raw_allowed_origins)

        database_url = os.getenv("DATABASE_URL", "").strip()
        if not database_url:
            raise ValueError("DATABASE_URL environment variable must be set")

        parsed_db = urlparse(database_url)
        if parsed_db.scheme != "postgresql+asyncpg":
            raise ValueError("DATABASE_URL must start with 'postgresql+asyncpg://'")
        if not parsed_db.hostname:
            raise ValueError("DATABASE_URL must include hostname")

        identity_jwks_url = _optional("IDENTITY_JWKS_URL")
        identity_jwt_secret = _optional("IDENTITY_JWT_SECRET")
        if identity_jwks_url is None and identity_jwt_secret is None:
            raise ValueError(
                "Either IDENTITY_JWKS_URL or IDENTITY_JWT_SECRET must be set"
            )
        default_algorithm = "RS256" if identity_jwks_url else "HS256"

        frontend_url = os.getenv(
            "FRONTEND_URL", cls.model_fields["frontend_url"].default
        ).strip().rstrip("/")
        parsed_frontend = urlparse(frontend_url)
        if parsed_frontend.scheme not in {"http", "https"} or not parsed_frontend.netloc:
            raise ValueError("FRONTEND_URL must be a valid http/https URL")

        return cls(
            app_name=os.getenv("APP_NAME", cls.model_fields["app_name"].default),
            debug=os.getenv("DEBUG", "false").lower() == "true",
            database_url=database_url,
            redis_url=os.getenv("REDIS_URL", cls.model_fields["redis_url"].default).strip(),
            allowed_origins=allowed_origins,
            db_pool_size=_parse_positive_int(
                "DB_POOL_SIZE", cls.model_fields["db_pool_size"].default
            ),
            db_max_overflow=_parse_positive_int(
                "DB_MAX_OVERFLOW",
                cls.model_fields["db_max_overflow"].default,
                allow_zero=True,
            ),
            db_pool_recycle=_parse_positive_int(
                "DB_POOL_RECYCLE", cls.model_fields["db_pool_recycle"].default
            ),
            db_pool_pre_ping=_parse_bool(
                "DB_POOL_PRE_PING", cls.model_fields["db_pool_pre_ping"].default
            ),
            core_admin_email=core_admin_email,
            frontend_url=frontend_url,
            invitation_ttl_days=_parse_positive_int(
                "INVITATION_TTL_DAYS", cls.model_fields["invitation_ttl_days"].default
            ),
            identity_jwks_url=identity_jwks_url,
            identity_jwt_secret=identity_jwt_secret,
            identity_jwt_algorithm=os.getenv(
                "IDENTITY_JWT_ALGORITHM", default_algorithm
            ).strip(),
            identity_jwt_audience=_optional("IDENTITY_JWT_AUDIENCE"),
            identity_jwt_issuer=_optional("IDENTITY_JWT_ISSUER"),
            cloudinary_cloud_name=_optional("CLOUDINARY_CLOUD_NAME"),
            cloudinary_api_key=_optional("CLOUDINARY_API_KEY"),
            cloudinary_api_secret=_optional("CLOUDINARY_API_SECRET"),
            resend_api_key=_optional("RESEND_API_KEY"),
            invite_email_from=os.getenv(
                "INVITE_EMAIL_FROM", cls.model_fields["invite_email_from"].default
            ).strip(),
            invite_rate_limit_attempts=_parse_positive_int(
                "INVITE_RATE_LIMIT_ATTEMPTS",
                cls.model_fields["invite_rate_limit_attempts"].default,
            ),
            invite_rate_limit_window_seconds=_parse_positive_int(
                "INVITE_RATE_LIMIT_WINDOW_SECONDS",
                cls.model_fields["invite_rate_limit_window_seconds"].default,
            ),
        )


# Deferred so the package can be imported without a complete environment;
# validation happens on first attribute access, normally during startup.
_settings_instance: Settings | None = None
_settings_lock = threading.Lock()


def get_settings() -> Settings:
    """Get settings instance, creating it on first access.

    Uses double-checked locking so concurrent first accesses build the
    instance once.

    Raises:
        ValueError: If required environment variables are missing or invalid
    """
    global _settings_instance

    if _settings_instance is not None:
        return _settings_instance

    with _settings_lock:
        if _settings_instance is None:
            _settings_instance = Settings.from_env()

    return _settings_instance


class _SettingsProxy:
    """Proxy to defer settings creation until first attribute access."""

    def __getattr__(self, name: str):
        return getattr(get_settings(), name)


settings = _SettingsProxy()  # type: ignore[assignment]
