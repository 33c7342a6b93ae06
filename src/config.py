"""Configuration management from environment variables."""
import os
from dotenv import load_dotenv

# Load .env file
load_dotenv()


class Config:
    """Application configuration."""

    # Supabase
    SUPABASE_URL: str | None = os.getenv("SUPABASE_URL")
    SUPABASE_SERVICE_ROLE_KEY: str | None = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
    COUPON_TABLE: str = os.getenv("COUPON_TABLE", "coupon_cache")
    SEARCH_LOG_TABLE: str = os.getenv("SEARCH_LOG_TABLE", "coupon_searches")

    # Search providers
    SEARCH_PROVIDER: str = os.getenv("SEARCH_PROVIDER", "mistral")
    MISTRAL_API_KEY: str | None = os.getenv("MISTRAL_API_KEY")
    MISTRAL_BASE_URL: str = os.getenv("MISTRAL_BASE_URL", "https://api.mistral.ai/v1")
    MISTRAL_MODEL: str = os.getenv("MISTRAL_MODEL", "mistral-large-2407")
    PERPLEXITY_API_KEY: str | None = os.getenv("PERPLEXITY_API_KEY")
    PERPLEXITY_BASE_URL: str = os.getenv("PERPLEXITY_BASE_URL", "https://api.perplexity.ai")
    PERPLEXITY_MODEL: str = os.getenv("PERPLEXITY_MODEL", "sonar-pro")
    PROVIDER_TIMEOUT: float = float(os.getenv("PROVIDER_TIMEOUT", "120"))
    PROVIDER_MAX_RETRIES: int = int(os.getenv("PROVIDER_MAX_RETRIES", "3"))

    # Cache
    CACHE_TTL_HOURS: int = int(os.getenv("CACHE_TTL_HOURS", "24"))
    IMPORT_TTL_HOURS: int = int(os.getenv("IMPORT_TTL_HOURS", "48"))

    # API
    API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.getenv("API_PORT", "8000"))
    CORS_ALLOW_ORIGINS: list[str] = [
        origin.strip()
        for origin in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",")
        if origin.strip()
    ]

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # API Security (bulk import endpoint)
    API_KEY: str | None = os.getenv("API_KEY")

    @classmethod
    def validate(cls, require_provider: bool = True) -> None:
        """Validate required configuration."""
        errors = []
        if not cls.SUPABASE_URL:
            errors.append("SUPABASE_URL is required")
        if not cls.SUPABASE_SERVICE_ROLE_KEY:
            errors.append("SUPABASE_SERVICE_ROLE_KEY is required")
        if require_provider:
            provider = cls.SEARCH_PROVIDER.lower()
            if provider not in ("mistral", "perplexity"):
                errors.append(f"SEARCH_PROVIDER must be 'mistral' or 'perplexity', got {cls.SEARCH_PROVIDER!r}")
            elif provider == "mistral" and not cls.MISTRAL_API_KEY:
                errors.append("MISTRAL_API_KEY is required")
            elif provider == "perplexity" and not cls.PERPLEXITY_API_KEY:
                errors.append("PERPLEXITY_API_KEY is required")
        if errors:
            raise ValueError(f"Configuration errors: {', '.join(errors)}")


config = Config()
