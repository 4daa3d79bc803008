from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEV_JWT_SECRET = "dev-secret-key-change-in-production"
DEV_STRIPE_KEY = "sk_test_development_key"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    ENV: str = "development"
    APP_NAME: str = "Believe Fundraising"
    APP_VERSION: str = "1.0.0"
    API_PREFIX: str = "/api"

    DATABASE_URL: str = "sqlite:///./dev.db"
    SEED_DEMO_DATA: bool = True

    JWT_SECRET: str = DEV_JWT_SECRET
    JWT_ISSUER: str = "believe-fundraising"
    ACCESS_TTL_MIN: int = 7 * 24 * 60
    BCRYPT_ROUNDS: int = 12

    STRIPE_API_KEY: str | None = None
    STRIPE_PUBLISHABLE_KEY: str | None = None
    STRIPE_WEBHOOK_SECRET: str | None = None
    STRIPE_CURRENCY: str = "usd"

    # fee schedule, basis points + flat cents
    STRIPE_FEE_BPS: int = 290
    STRIPE_FEE_FLAT_CENTS: int = 30
    PLATFORM_FEE_BPS: int = 500

    ENABLE_PAYMENTS: bool = False

    CORS_ORIGINS: str = "http://localhost:5173"
    LOG_LEVEL: str = "INFO"

    @property
    def is_prod(self) -> bool:
        return self.ENV.lower() == "production"

    @property
    def is_dev(self) -> bool:
        return self.ENV.lower() == "development"

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def stripe_configured(self) -> bool:
        return bool(self.STRIPE_API_KEY) and self.STRIPE_API_KEY != DEV_STRIPE_KEY

    @property
    def payments_enabled(self) -> bool:
        return self.ENABLE_PAYMENTS and self.stripe_configured

    @model_validator(mode="after")
    def _check_production(self):
        if not self.is_prod:
            return self

        errors: list[str] = []
        if self.JWT_SECRET == DEV_JWT_SECRET:
            errors.append("JWT_SECRET must be set in production")
        if self.ENABLE_PAYMENTS and not self.stripe_configured:
            errors.append(
                "STRIPE_API_KEY is required when payments are enabled in production"
            )
        if self.ENABLE_PAYMENTS and not self.STRIPE_WEBHOOK_SECRET:
            errors.append(
                "STRIPE_WEBHOOK_SECRET is required when payments are enabled in production"
            )
        if errors:
            raise ValueError(
                "Configuration validation failed:\n" + "\n".join(errors)
            )
        return self


settings = Settings()
