import os
from functools import lru_cache

from dotenv import load_dotenv, find_dotenv

# Prefer loading environment variables from a .env file when one exists
_env_path = find_dotenv(usecwd=True)
if _env_path:
    load_dotenv(_env_path, override=False)


class Settings:
    SECRET_KEY: str = os.getenv("SECRET_KEY", "change_me_secret")
    ALGORITHM: str = os.getenv("ALGORITHM", "HS256")
    # Default to 7 days so users stay logged in for a week
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(7 * 24 * 60)))
    DATABASE_URL: str = os.getenv("DATABASE_URL")

    RAZORPAY_KEY_ID: str = os.getenv("RAZORPAY_KEY_ID", "")
    RAZORPAY_KEY_SECRET: str = os.getenv("RAZORPAY_KEY_SECRET", "")
    RAZORPAY_CURRENCY: str = os.getenv("RAZORPAY_CURRENCY", "INR")

    # Uploaded images live under UPLOAD_DIR/{product,collection}-images
    UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", "uploads")
    MAX_UPLOAD_BYTES: int = int(os.getenv("MAX_UPLOAD_BYTES", str(5 * 1024 * 1024)))

    # Path to a Firebase service account JSON; Firebase ID tokens are accepted only when set
    FIREBASE_CREDENTIALS: str = os.getenv("FIREBASE_CREDENTIALS", "")

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()


@lru_cache
def get_settings():
    return Settings()
