import os
from dataclasses import dataclass

from dotenv import load_dotenv


def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    try:
        return int(v)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    jwt_secret: str
    env: str = "dev"
    database_url: str = "postgresql://localhost/time_tracker"
    db_statement_timeout_ms: int = 30000
    db_pool_size: int = 20

    jwt_issuer: str = "time-tracker"
    jwt_audience: str = "time-tracker-users"
    jwt_access_expiry_minutes: int = 15
    jwt_refresh_expiry_days: int = 7

    password_hash_rounds: int = 3
    max_login_attempts: int = 5
    lockout_minutes: int = 30

    login_date_timezone: str = "UTC"

    pagination_default_limit: int = 20
    pagination_max_limit: int = 100

    log_level: str = "INFO"
    frontend_url: str = "http://localhost:5173"

    def __post_init__(self) -> None:
        if not self.jwt_secret:
            raise ValueError("JWT_SECRET is required")
        if len(self.jwt_secret) < 32:
            raise ValueError("JWT_SECRET must be at least 32 characters")

    @property
    def is_production(self) -> bool:
        return self.env.lower() in {"prod", "production"}


def load_settings() -> Settings:
    load_dotenv()
    return Settings(
        jwt_secret=os.getenv("JWT_SECRET", ""),
        env=os.getenv("ENV", "dev"),
        database_url=os.getenv("DATABASE_URL", "postgresql://localhost/time_tracker"),
        db_statement_timeout_ms=_env_int("DB_STATEMENT_TIMEOUT_MS", 30000),
        db_pool_size=_env_int("DB_POOL_SIZE", 20),
        jwt_issuer=os.getenv("JWT_ISSUER", "time-tracker"),
        jwt_audience=os.getenv("JWT_AUDIENCE", "time-tracker-users"),
        jwt_access_expiry_minutes=_env_int("JWT_ACCESS_EXPIRY_MINUTES", 15),
        jwt_refresh_expiry_days=_env_int("JWT_REFRESH_EXPIRY_DAYS", 7),
        password_hash_rounds=_env_int("PASSWORD_HASH_ROUNDS", 3),
        max_login_attempts=_env_int("MAX_LOGIN_ATTEMPTS", 5),
        lockout_minutes=_env_int("LOCKOUT_MINUTES", 30),
        login_date_timezone=os.getenv("LOGIN_DATE_TIMEZONE", "UTC"),
        pagination_default_limit=_env_int("PAGINATION_DEFAULT_LIMIT", 20),
        pagination_max_limit=_env_int("PAGINATION_MAX_LIMIT", 100),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        frontend_url=os.getenv("FRONTEND_URL", "http://localhost:5173"),
    )
