from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Auth
    jwt_secret_key: str = "change-this-to-a-random-string"
    jwt_access_token_expire_minutes: int = 15
    jwt_algorithm: str = "HS256"

    # AI provider: "gemini" or "yandexgpt"
    ai_provider: str = "gemini"
    gemini_api_key: str = ""
    gemini_model: str = "gemini-1.5-flash"
    yandex_api_key: str = ""
    yandex_folder_id: str = ""
    yandex_model: str = "yandexgpt-lite/latest"
    yandex_use_iam: bool = False  # YANDEX_API_KEY holds an IAM token instead of an API key
    ai_timeout_seconds: float = 60.0

    # Shared quota for the upstream AI key (one budget per process)
    ai_rate_limit_per_minute: int = 30
    ai_rate_limit_per_day: int = 1000

    # Per-IP throttle for the public chat endpoint (slowapi syntax)
    chat_rate_limit: str = "20/minute"

    # Delivery
    delivery_origin_city: str = "Москва"
    delivery_timeout_seconds: float = 5.0

    cdek_enabled: bool = False
    cdek_account: str = ""
    cdek_password: str = ""
    cdek_test_mode: bool = True
    cdek_free_shipping_threshold: float | None = None

    boxberry_enabled: bool = False
    boxberry_token: str = ""
    boxberry_test_mode: bool = True
    boxberry_free_shipping_threshold: float | None = None

    russian_post_enabled: bool = False
    russian_post_token: str = ""
    russian_post_login: str = ""
    russian_post_password: str = ""
    russian_post_index_from: str = "101000"  # Moscow
    russian_post_free_shipping_threshold: float | None = None

    # App
    app_env: str = "development"
    app_debug: bool = True
    app_host: str = "0.0.0.0"
    app_port: int = 3001

    # CORS
    allowed_origins: str = "http://localhost:5173"  # comma-separated

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

    if settings.ai_provider not in ("gemini", "yandexgpt"):
        errors.append(f"AI_PROVIDER must be 'gemini' or 'yandexgpt', got '{settings.ai_provider}'")

    if settings.ai_rate_limit_per_minute < 1 or settings.ai_rate_limit_per_day < 1:
        errors.append("AI_RATE_LIMIT_PER_MINUTE and AI_RATE_LIMIT_PER_DAY must be positive")

    if settings.app_env == "production":
        if settings.allowed_origins == "*":
            errors.append("ALLOWED_ORIGINS must not be '*' in production")
        if settings.app_debug:
            errors.append("APP_DEBUG must be false in production")

    if errors:
        raise SystemExit("Configuration errors:\n  - " + "\n  - ".join(errors))
