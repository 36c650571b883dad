import os
from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    log_level: str

    storage_backend: str
    storage_root: str
    s3_endpoint: str
    s3_region: str
    s3_bucket: str
    s3_access_key_id: str
    s3_secret_access_key: str

    media_upload_url: str
    media_upload_preset: str
    media_upload_timeout: float

    free_shipping_threshold: Decimal
    flat_shipping_rate: Decimal
    tax_rate: Decimal
    payment_proof_max_bytes: int


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///storefront.db"),
        log_level=_getenv("LOG_LEVEL", "INFO").upper(),
        storage_backend=_getenv("STORAGE_BACKEND", "local"),
        storage_root=_getenv("STORAGE_ROOT", ""),
        s3_endpoint=_getenv("S3_ENDPOINT", ""),
        s3_region=_getenv("S3_REGION", "nyc3"),
        s3_bucket=_getenv("S3_BUCKET", ""),
        s3_access_key_id=_getenv("S3_ACCESS_KEY_ID", ""),
        s3_secret_access_key=_getenv("S3_SECRET_ACCESS_KEY", ""),
        media_upload_url=_getenv("MEDIA_UPLOAD_URL", ""),
        media_upload_preset=_getenv("MEDIA_UPLOAD_PRESET", ""),
        media_upload_timeout=float(_getenv("MEDIA_UPLOAD_TIMEOUT", "30")),
        free_shipping_threshold=Decimal(_getenv("FREE_SHIPPING_THRESHOLD", "100")),
        flat_shipping_rate=Decimal(_getenv("FLAT_SHIPPING_RATE", "15")),
        tax_rate=Decimal(_getenv("TAX_RATE", "0.08")),
        payment_proof_max_bytes=int(_getenv("PAYMENT_PROOF_MAX_BYTES", str(5 * 1024 * 1024))),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "LOG_LEVEL": s.log_level,
        "STORAGE_BACKEND": s.storage_backend,
        "STORAGE_ROOT": s.storage_root,
        "S3_ENDPOINT": s.s3_endpoint,
        "S3_REGION": s.s3_region,
        "S3_BUCKET": s.s3_bucket,
        "S3_ACCESS_KEY_ID": s.s3_access_key_id,
        "S3_SECRET_ACCESS_KEY": s.s3_secret_access_key,
        "MEDIA_UPLOAD_URL": s.media_upload_url,
        "MEDIA_UPLOAD_PRESET": s.media_upload_preset,
        "MEDIA_UPLOAD_TIMEOUT": s.media_upload_timeout,
        # pricing
        "FREE_SHIPPING_THRESHOLD": s.free_shipping_threshold,
        "FLAT_SHIPPING_RATE": s.flat_shipping_rate,
        "TAX_RATE": s.tax_rate,
        "PAYMENT_PROOF_MAX_BYTES": s.payment_proof_max_bytes,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,
        # product image batches go through the app before hitting the media host
        "MAX_CONTENT_LENGTH": 20 * 1024 * 1024,
    }
