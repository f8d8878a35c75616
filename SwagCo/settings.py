# settings.py
import os
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Project
    PROJECT_NAME: str = "My Swag Co Storefront"
    API_PREFIX: str = "/api"

    # Frontend URL (CORS)
    FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:3000")
    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "*")

    # Database
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "sqlite+aiosqlite:///./dev.db"  # default local SQLite
    )

    # Security (tokens are issued by the auth provider, we only verify them)
    JWT_SECRET: str = os.getenv("JWT_SECRET", "super-secret-key")
    JWT_ALGORITHM: str = "HS256"

    # Stripe
    STRIPE_SECRET_KEY: str = os.getenv("STRIPE_SECRET_KEY", "")
    STRIPE_WEBHOOK_SECRET: str = os.getenv("STRIPE_WEBHOOK_SECRET", "")
    CURRENCY: str = "usd"

    # Cloudinary (artwork storage)
    CLOUDINARY_CLOUD_NAME: str = os.getenv("CLOUDINARY_CLOUD_NAME", "")
    CLOUDINARY_API_KEY: str = os.getenv("CLOUDINARY_API_KEY", "")
    CLOUDINARY_API_SECRET: str = os.getenv("CLOUDINARY_API_SECRET", "")
    MAX_UPLOAD_MB: int = 10

    # AI / image services
    GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
    GEMINI_IMAGE_MODEL: str = "gemini-3-pro-image-preview"
    REMOVE_BG_API_KEY: str = os.getenv("REMOVE_BG_API_KEY", "")
    VECTORIZER_API_ID: str = os.getenv("VECTORIZER_API_ID", "")
    VECTORIZER_API_SECRET: str = os.getenv("VECTORIZER_API_SECRET", "")
    AI_TIMEOUT_SECONDS: float = 60.0

    # Business rules
    MIN_ORDER_QUANTITY: int = 24
    DEFAULT_DEPOSIT_PERCENTAGE: float = 50.0
    MINIMUM_CHARGE: float = 0.50  # Stripe's smallest chargeable amount
    MAX_INK_COLORS: int = 4
    DRAFT_AUTOSAVE_SECONDS: float = 2.0
    CAMPAIGN_PRICING_QUANTITY: int = 24

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


# ✅ Instantiate settings globally
settings = Settings()
