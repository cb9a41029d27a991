from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # PostgreSQL
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "georise"
    postgres_password: str = "changeme"
    postgres_db: str = "georise"

    # Full SQLAlchemy URL; overrides the postgres_* fields when set (tests use sqlite+aiosqlite)
    database_url: str = ""

    @property
    def postgres_url(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def postgres_url_sync(self) -> str:
        """For Alembic migrations (sync driver)."""
        return (
            f"postgresql+psycopg2://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # Redis (Celery broker + result backend)
    redis_url: str = "redis://localhost:6379/0"

    # Auth
    jwt_secret_key: str = "change-this-to-a-random-string"
    jwt_access_token_expire_minutes: int = 30
    jwt_refresh_token_expire_days: int = 30
    jwt_algorithm: str = "HS256"

    # Trusted server-to-server callers (schedulers, workflow engines) send this as a bearer token
    service_role_key: str = ""

    # Perplexity (mention checks)
    perplexity_api_key: str = ""
    perplexity_model: str = "sonar-pro"

    # Lovable AI gateway (competitor analysis, chat coach)
    lovable_api_key: str = ""
    lovable_api_url: str = "https://ai.gateway.lovable.dev/v1/chat/completions"
    lovable_model: str = "google/gemini-2.5-flash"

    # Analysis run tuning
    analysis_concurrency: int = 4
    analysis_batch_delay_ms: int = 200
    analysis_lock_minutes: int = 30  # a brand lock older than this is treated as stale
    upstream_timeout_seconds: float = 60.0
    mention_matcher: str = "substring"  # substring | word_boundary

    # App
    app_env: str = "development"
    app_debug: bool = True
    app_host: str = "0.0.0.0"
    app_port: int = 8000

    # CORS
    allowed_origins: str = "*"  # comma-separated, e.g. "https://app.example.com,https://admin.example.com"

    # Logging
    log_level: str = "INFO"
    log_json: bool = False  # set True in production for structured JSON logs

    # Sentry
    sentry_dsn: str = ""  # leave empty to disable


settings = Settings()


def validate_settings_for_production() -> None:
    """Validate critical settings. Called on startup in non-test environments."""
    errors: list[str] = []

    if settings.jwt_secret_key in ("change-this-to-a-random-string", ""):
        errors.append("JWT_SECRET_KEY must be set to a secure random value")

    if len(settings.jwt_secret_key) < 32:
        errors.append("JWT_SECRET_KEY must be at least 32 characters")

    if settings.mention_matcher not in ("substring", "word_boundary"):
        errors.append("MENTION_MATCHER must be 'substring' or 'word_boundary'")

    if settings.app_env == "production":
        if settings.allowed_origins == "*":
            errors.append("ALLOWED_ORIGINS must not be '*' in production")
        if settings.app_debug:
            errors.append("APP_DEBUG must be false in production")
        if not settings.perplexity_api_key:
            errors.append("PERPLEXITY_API_KEY must be set in production")
        if not settings.lovable_api_key:
            errors.append("LOVABLE_API_KEY must be set in production")

    if errors:
        raise SystemExit("Configuration errors:\n  - " + "\n  - ".join(errors))
