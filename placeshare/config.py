import os
from pathlib import Path

from dotenv import load_dotenv

# .env lives in the project root, next to pyproject.toml
PROJECT_ROOT = Path(__file__).parent.parent
load_dotenv(dotenv_path=PROJECT_ROOT / ".env")


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017")
    DB_NAME = os.getenv("DB_NAME", "placeshare")
    # Standalone mongod has no multi-document transactions
    MONGO_TRANSACTIONS = _flag("MONGO_TRANSACTIONS", "true")

    JWT_SECRET = os.getenv("JWT_SECRET", "change-me")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

    GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY")
    GEOCODING_URL = os.getenv("GEOCODING_URL", "https://maps.googleapis.com/maps/api/geocode/json")
    GEOCODING_TIMEOUT = float(os.getenv("GEOCODING_TIMEOUT", "10"))

    IMAGE_STORAGE = os.getenv("IMAGE_STORAGE", "local")
    UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads/images")
    # URL path the local upload directory is served under
    UPLOAD_URL_PATH = os.getenv("UPLOAD_URL_PATH", "/uploads/images")
    MAX_IMAGE_BYTES = int(os.getenv("MAX_IMAGE_BYTES", "500000"))
    AWS_S3_BUCKET_NAME = os.getenv("AWS_S3_BUCKET_NAME")
    AWS_REGION = os.getenv("AWS_REGION", "us-east-1")

    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "").split(",") if os.getenv("CORS_ORIGINS") else ["*"]
    API_PREFIX = os.getenv("API_PREFIX", "/api")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Pending places younger than this are left alone by the reconciliation sweep
    RECONCILE_GRACE_MINUTES = int(os.getenv("RECONCILE_GRACE_MINUTES", "10"))


settings = Settings()
