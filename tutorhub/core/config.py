import os

from dotenv import load_dotenv

load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./tutorhub.db")

CORS_ALLOWED_ORIGINS = _get_list(os.getenv("CORS_ALLOWED_ORIGINS"), ["http://localhost:5173"])

# Third-party identity provider. Leaving the JWKS URL empty switches to the
# shared-secret verifier used in development and tests.
IDENTITY_JWKS_URL = os.getenv("IDENTITY_JWKS_URL", "")
IDENTITY_AUDIENCE = os.getenv("IDENTITY_AUDIENCE", "")
IDENTITY_ISSUER = os.getenv("IDENTITY_ISSUER", "")

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "token")
SESSION_COOKIE_MAX_AGE_DAYS = int(os.getenv("SESSION_COOKIE_MAX_AGE_DAYS", "7"))
SESSION_COOKIE_SECURE = _get_bool(
    os.getenv("SESSION_COOKIE_SECURE"),
    default=APP_ENV.lower() == "production",
)

PAYMENT_API_URL = os.getenv("PAYMENT_API_URL", "https://api.stripe.com/v1/payment_intents")
PAYMENT_SECRET_KEY = os.getenv("PAYMENT_SECRET_KEY", "")
PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "usd")
PAYMENT_TIMEOUT_SECONDS = float(os.getenv("PAYMENT_TIMEOUT_SECONDS", "10"))

DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", "10"))
MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE", "100"))


def validate_runtime_config() -> None:
    if APP_ENV.lower() != "production":
        return
    if not IDENTITY_JWKS_URL and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY or IDENTITY_JWKS_URL must be set in production.")
    if not PAYMENT_SECRET_KEY:
        raise RuntimeError("PAYMENT_SECRET_KEY must be set in production.")
