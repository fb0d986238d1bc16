import os
from pathlib import Path
from typing import List
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Load environment variables from the backend .env explicitly (works regardless of cwd)
load_dotenv(dotenv_path=Path(__file__).parent.parent / ".env")


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes", "on")


class Settings(BaseSettings):
    """Application settings"""

    # Database - PostgreSQL (fallback to local SQLite if not provided)
    DATABASE_URL: str = os.getenv("DATABASE_URL") or "sqlite:///./medimind_payments.db"

    # Server
    PORT: int = int(os.getenv("PORT", "4000"))
    # Public base of this API; SSLCommerz posts IPN and browser callbacks here
    API_BASE_URL: str = os.getenv("API_BASE_URL", "")
    FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:5175")

    # Stripe
    STRIPE_SECRET_KEY: str = os.getenv("STRIPE_SECRET_KEY", "")
    STRIPE_WEBHOOK_SECRET: str = os.getenv("STRIPE_WEBHOOK_SECRET", "")

    # SSLCommerz
    SSLCOMMERZ_STORE_ID: str = os.getenv("SSLCOMMERZ_STORE_ID", "")
    SSLCOMMERZ_STORE_PASSWORD: str = os.getenv("SSLCOMMERZ_STORE_PASSWORD", "")
    SSLCOMMERZ_IS_LIVE: bool = _flag("SSLCOMMERZ_IS_LIVE")

    # Outbound gateway calls
    GATEWAY_TIMEOUT_SECONDS: float = float(os.getenv("GATEWAY_TIMEOUT_SECONDS", "15"))

    @property
    def STRIPE_ENABLED(self) -> bool:
        return self.STRIPE_SECRET_KEY.startswith("sk_")

    @property
    def SSLCOMMERZ_ENABLED(self) -> bool:
        store_id = self.SSLCOMMERZ_STORE_ID
        return bool(store_id and self.SSLCOMMERZ_STORE_PASSWORD and "your_" not in store_id)

    @property
    def SSLCOMMERZ_BASE_URL(self) -> str:
        if self.SSLCOMMERZ_IS_LIVE:
            return "https://securepay.sslcommerz.com"
        return "https://sandbox.sslcommerz.com"

    @property
    def EFFECTIVE_API_BASE_URL(self) -> str:
        return (self.API_BASE_URL or f"http://localhost:{self.PORT}").rstrip("/")

    # JWT (verified identity for checkout and plan endpoints)
    JWT_SECRET: str = os.getenv("JWT_SECRET", "your-secret-key-here")
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
    REQUIRE_AUTH: bool = _flag("REQUIRE_AUTH")

    # CORS
    CORS_ORIGINS: List[str] = [
        os.getenv("FRONTEND_URL", "http://localhost:5175"),
        "http://localhost:5173",
        "http://localhost:5174",
        "http://localhost:3000",
    ]

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = _flag("RATE_LIMIT_ENABLED")
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379")
    RATE_LIMIT_REQUESTS: int = int(os.getenv("RATE_LIMIT_REQUESTS", "100"))
    RATE_LIMIT_WINDOW: int = int(os.getenv("RATE_LIMIT_WINDOW", "60"))  # seconds

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Abandoned pending checkout expiry
    PENDING_EXPIRY_ENABLED: bool = _flag("PENDING_EXPIRY_ENABLED")
    PENDING_TTL_MINUTES: int = int(os.getenv("PENDING_TTL_MINUTES", "1440"))
    PENDING_SWEEP_INTERVAL_SECONDS: int = int(os.getenv("PENDING_SWEEP_INTERVAL_SECONDS", "600"))

    model_config = {
        "env_file": ".env",
        "extra": "ignore",
    }

# Create global settings instance
settings = Settings()
