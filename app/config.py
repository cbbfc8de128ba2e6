import os

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator

load_dotenv()


_TRUTHY_VALUES = {"1", "true", "yes", "on"}

METADATA_BACKENDS = {"sql", "d1"}
STORAGE_BACKENDS = {"r2", "memory"}


def _env_bool(name: str, default: str = "") -> bool:
    return os.getenv(name, default).lower() in _TRUTHY_VALUES


def _env_float(name: str) -> float | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    return float(raw)


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    database_url: str | None = os.getenv("DATABASE_URL") or None
    db_pool_size: int = int(os.getenv("DB_POOL_SIZE", "5"))
    db_max_overflow: int = int(os.getenv("DB_MAX_OVERFLOW", "10"))
    db_pool_timeout: int = int(os.getenv("DB_POOL_TIMEOUT", "30"))
    db_pool_recycle: int = int(os.getenv("DB_POOL_RECYCLE", "1800"))

    # Backend selection
    metadata_backend: str = os.getenv("METADATA_BACKEND", "sql")
    storage_backend: str = os.getenv("STORAGE_BACKEND", "r2")

    # Cloudflare (R2 object storage, D1 metadata)
    cloudflare_api_token: str | None = os.getenv("CLOUDFLARE_API_TOKEN") or None
    cloudflare_account_id: str | None = os.getenv("CLOUDFLARE_ACCOUNT_ID") or None
    r2_bucket_name: str | None = os.getenv("R2_BUCKET_NAME") or None
    d1_database_id: str | None = os.getenv("D1_DATABASE_ID") or None
    cloudflare_api_base_url: str = os.getenv(
        "CLOUDFLARE_API_BASE_URL", "https://api.cloudflare.com/client/v4"
    )
    backend_timeout_seconds: float = float(os.getenv("BACKEND_TIMEOUT_SECONDS", "30"))
    object_list_page_size: int = int(os.getenv("OBJECT_LIST_PAGE_SIZE", "1000"))

    # Bundles
    default_bundle_filename: str = os.getenv("DEFAULT_BUNDLE_FILENAME", "bundle.zip")
    size_cache_ttl_seconds: float | None = _env_float("SIZE_CACHE_TTL_SECONDS")

    # Runtime flags
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    testing: bool = _env_bool("TESTING")

    @field_validator("metadata_backend")
    @classmethod
    def validate_metadata_backend(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in METADATA_BACKENDS:
            raise ValueError(f"METADATA_BACKEND must be one of {sorted(METADATA_BACKENDS)}, got {value!r}")
        return value

    @field_validator("storage_backend")
    @classmethod
    def validate_storage_backend(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in STORAGE_BACKENDS:
            raise ValueError(f"STORAGE_BACKEND must be one of {sorted(STORAGE_BACKENDS)}, got {value!r}")
        return value


settings = Settings()
