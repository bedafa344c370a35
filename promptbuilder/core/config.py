"""
Prompt Builder Backend — Configuration
Standalone settings with Stripe dual-mode (test/live) toggle and
managed LLM provider keys (OpenAI, Anthropic, Google).
"""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Application ──────────────────────────────────────────────────────
    APP_NAME: str = "Prompt Builder"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    CORS_ORIGINS: str = "http://localhost:3000"
    APP_URL: str = "http://localhost:3000"

    # ── Database ─────────────────────────────────────────────────────────
    DATABASE_URL: str = "postgresql+asyncpg://promptbuilder:changeme@db:5432/promptbuilder"

    # ── Auth (Supabase-issued JWT) ───────────────────────────────────────
    SUPABASE_JWT_SECRET: str = "change-me-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_AUDIENCE: str = "authenticated"

    # Secret used to derive the key that encrypts saved user API keys
    API_KEY_ENCRYPTION_SECRET: str = "change-me-in-production-use-openssl-rand-hex-32"

    # ── LLM Providers (managed keys) ─────────────────────────────────────
    OPENAI_API_KEY: str = ""
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    ANTHROPIC_API_KEY: str = ""
    ANTHROPIC_BASE_URL: str = "https://api.anthropic.com/v1"
    ANTHROPIC_VERSION: str = "2023-06-01"
    GOOGLE_API_KEY: str = ""
    GOOGLE_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"

    DEFAULT_OPENAI_MODEL: str = "gpt-3.5-turbo"
    DEFAULT_ANTHROPIC_MODEL: str = "claude-3-haiku-20240307"
    DEFAULT_GOOGLE_MODEL: str = "gemini-1.5-flash-latest"
    QUALIFIER_MODEL: str = "gpt-3.5-turbo"

    REFINE_TEMPERATURE: float = 0.5
    REFINE_MAX_TOKENS: int = 1000
    PROVIDER_TIMEOUT_SECONDS: int = 60

    # ── Plans ────────────────────────────────────────────────────────────
    FREE_PLAN_ID: str = "free"

    # ── Stripe Dual-Mode Billing ─────────────────────────────────────────
    STRIPE_MODE: str = "test"  # "test" or "live"

    # Test mode keys
    STRIPE_TEST_SECRET_KEY: str = ""
    STRIPE_TEST_PUBLISHABLE_KEY: str = ""
    STRIPE_TEST_WEBHOOK_SECRET: str = ""

    # Live mode keys
    STRIPE_LIVE_SECRET_KEY: str = ""
    STRIPE_LIVE_PUBLISHABLE_KEY: str = ""
    STRIPE_LIVE_WEBHOOK_SECRET: str = ""

    # Legacy single-mode keys (backward compat)
    STRIPE_SECRET_KEY: str = ""
    STRIPE_PUBLISHABLE_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""

    # Where the billing portal sends users back to
    STRIPE_PORTAL_RETURN_URL: str = ""

    # ── Shared Library ───────────────────────────────────────────────────
    LIBRARY_DEFAULT_LIMIT: int = 10
    LIBRARY_MAX_LIMIT: int = 100

    # ── Stripe Helper Properties ─────────────────────────────────────────
    @property
    def active_stripe_secret_key(self) -> str:
        if self.STRIPE_MODE == "live":
            return self.STRIPE_LIVE_SECRET_KEY or self.STRIPE_SECRET_KEY
        return self.STRIPE_TEST_SECRET_KEY or self.STRIPE_SECRET_KEY

    @property
    def active_stripe_publishable_key(self) -> str:
        if self.STRIPE_MODE == "live":
            return self.STRIPE_LIVE_PUBLISHABLE_KEY or self.STRIPE_PUBLISHABLE_KEY
        return self.STRIPE_TEST_PUBLISHABLE_KEY or self.STRIPE_PUBLISHABLE_KEY

    @property
    def active_stripe_webhook_secret(self) -> str:
        if self.STRIPE_MODE == "live":
            return self.STRIPE_LIVE_WEBHOOK_SECRET or self.STRIPE_WEBHOOK_SECRET
        return self.STRIPE_TEST_WEBHOOK_SECRET or self.STRIPE_WEBHOOK_SECRET

    @property
    def portal_return_url(self) -> str:
        return self.STRIPE_PORTAL_RETURN_URL or f"{self.APP_URL}/dashboard/billing"

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
