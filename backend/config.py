import os
from datetime import datetime

ENV = os.getenv("ENV", "development").lower()

# Database
# Local development and tests run on SQLite; production points at PostgreSQL.
_DEFAULT_DATABASE_URL = "sqlite:///./hikaricha.db"
DATABASE_URL = os.getenv("DATABASE_URL", _DEFAULT_DATABASE_URL)
DB_ECHO = os.getenv("DB_ECHO", "false").lower() == "true"
AUTO_CREATE_TABLES = os.getenv("AUTO_CREATE_TABLES", "true").lower() == "true"

# JWT Configuration
# Tokens are issued by the auth collaborator; this service only verifies them.
_DEFAULT_SECRET_KEY = "dev-secret-key-change-in-production-abc123xyz789"
SECRET_KEY = os.getenv("SECRET_KEY", _DEFAULT_SECRET_KEY)  # Default for development only
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60

# HTTP
APP_NAME = "HikariCha Rewards"
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]
PURCHASE_RATE_LIMIT = os.getenv("PURCHASE_RATE_LIMIT", "10/minute")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Rewards
LEADERBOARD_MAX_LIMIT = 100
HISTORY_MAX_LIMIT = 100
# Accounts created up to this naive UTC moment earn EARLY_ADOPTER.
# Unset means every registration qualifies.
_EARLY_ADOPTER_DEADLINE = os.getenv("EARLY_ADOPTER_DEADLINE")
EARLY_ADOPTER_DEADLINE = (
    datetime.fromisoformat(_EARLY_ADOPTER_DEADLINE) if _EARLY_ADOPTER_DEADLINE else None
)


def validate_config() -> None:
    """
    Validate required configuration.

    This is intentionally strict only in production so that local development
    and tests can run with minimal environment setup.
    """
    if ENV != "production":
        return

    errors: list[str] = []

    if not SECRET_KEY or SECRET_KEY == _DEFAULT_SECRET_KEY:
        errors.append("SECRET_KEY must be set to a secure value in production")

    if not DATABASE_URL or DATABASE_URL.startswith("sqlite"):
        errors.append("DATABASE_URL must point at a server database in production")

    if not CORS_ORIGINS:
        errors.append("CORS_ORIGINS must list at least one origin in production")

    if errors:
        raise RuntimeError("Invalid configuration:\n- " + "\n- ".join(errors))
