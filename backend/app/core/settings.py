import os


def _getenv(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip()
    return value if value else default


def _getenv_bool(name: str, default: bool = False) -> bool:
    raw = _getenv(name)
    if raw is None:
        return default
    return raw.lower() in {"1", "true", "yes", "y", "on"}


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


class Settings:
    def __init__(self) -> None:
        self.environment = (_getenv("ENVIRONMENT", "development") or "development").lower()
        self.log_level = (_getenv("LOG_LEVEL", "INFO") or "INFO").upper()
        self.database_url = _getenv("DATABASE_URL", "sqlite:///./marketplace.db") or "sqlite:///./marketplace.db"
        self.db_auto_create = _getenv_bool("DB_AUTO_CREATE", default=True)
        self.db_busy_timeout_s = max(1, _getenv_int("DB_BUSY_TIMEOUT_S", 30))
        self.cors_allow_origins = _getenv("CORS_ALLOW_ORIGINS")

        self.coupon_redeem_max_retries = max(1, _getenv_int("COUPON_REDEEM_MAX_RETRIES", 3))

        self.cloudinary_cloud_name = _getenv("CLOUDINARY_CLOUD_NAME")
        self.cloudinary_api_key = _getenv("CLOUDINARY_API_KEY")
        self.cloudinary_api_secret = _getenv("CLOUDINARY_API_SECRET")
        self.upload_folder_root = _getenv("UPLOAD_FOLDER_ROOT", "marketplace") or "marketplace"
        self.upload_timeout_s = float(_getenv("UPLOAD_TIMEOUT_S", "30") or "30")

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def cloudinary_configured(self) -> bool:
        return bool(self.cloudinary_cloud_name and self.cloudinary_api_key and self.cloudinary_api_secret)

    def resolved_cors_origins(self) -> list[str]:
        raw = self.cors_allow_origins
        if raw is None:
            return ["http://localhost:5173", "http://localhost:3000"]
        if raw.strip() == "*":
            return ["*"]
        origins = [o.strip() for o in raw.split(",") if o.strip()]
        return origins


settings = Settings()
