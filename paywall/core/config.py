# paywall/core/config.py
from typing import List, Optional
from pydantic_settings import BaseSettings
from pydantic import AnyHttpUrl, Field # AnyHttpUrl stays in pydantic core
from functools import lru_cache
from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()

class Settings(BaseSettings):
    PROJECT_NAME: str = "BSV Paywall"
    API_V1_STR: str = "/api/v1"

    # Paths that skip both identity and payment checks (exact match)
    PUBLIC_PATHS: List[str] = ["/", "/docs", "/api/v1/openapi.json"]

    # Payment protocol
    BSV_PAYMENT_VERSION: str = "1.0"
    # Sent to the wallet with internalizeAction, which accepts 5 to 50 characters
    BSV_PAYMENT_DESCRIPTION: str = Field(default="Payment for request", min_length=5, max_length=50)
    BSV_DEFAULT_PRICE_SATOSHIS: int = 100
    BSV_NONCE_TTL_SECONDS: int = 300

    # Wallet (BRC-100 JSON API)
    BSV_WALLET_URL: AnyHttpUrl = "http://localhost:3321"
    BSV_WALLET_TIMEOUT_SECONDS: float = 30.0
    BSV_WALLET_ORIGINATOR: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields from .env

@lru_cache() # Cache the settings object for performance
def get_settings() -> Settings:
    return Settings()

settings = get_settings()
