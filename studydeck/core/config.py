# Fichier: studydeck/core/config.py
from pydantic_settings import BaseSettings
from typing import List
from pydantic import ValidationError, field_validator
import sys


class Settings(BaseSettings):
    DATABASE_URL: str
    BACKEND_CORS_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
    ]

    ENVIRONMENT: str = "development"

    # --- Auth configuration ---
    # La clé secrète pour signer les JWTs.
    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Performance instrumentation
    SQLALCHEMY_SLOW_QUERY_THRESHOLD_MS: int = 300

    # --- Study session defaults ---
    DEFAULT_STUDY_MODE: str = "front-to-end"

    # Pomodoro defaults, in seconds (25 min work / 5 min rest)
    DEFAULT_WORK_DURATION: int = 1500
    DEFAULT_REST_DURATION: int = 300

    class Config:
        env_file = ".env"

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def _normalize_database_url(cls, value: str) -> str:
        """Ensure Postgres URLs always name an explicit driver.

        Managed Postgres providers still expose database URLs using the legacy
        ``postgres://`` scheme, which SQLAlchemy no longer accepts. Those URLs
        (and bare ``postgresql://`` ones) are upgraded to
        ``postgresql+psycopg://`` while SQLite and explicit drivers are left
        untouched.
        """

        if not isinstance(value, str):
            return value

        replacements = {
            "postgres://": "postgresql+psycopg://",
            "postgresql://": "postgresql+psycopg://",
        }

        for prefix, target in replacements.items():
            if value.startswith(prefix):
                return target + value[len(prefix) :]

        return value

    @field_validator("DEFAULT_STUDY_MODE")
    @classmethod
    def _check_study_mode(cls, value: str) -> str:
        if value not in {"front-to-end", "shuffle"}:
            raise ValueError("DEFAULT_STUDY_MODE must be 'front-to-end' or 'shuffle'")
        return value

    @field_validator("DEFAULT_WORK_DURATION", "DEFAULT_REST_DURATION")
    @classmethod
    def _check_positive_duration(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("timer durations must be positive")
        return value


def _log_settings_validation_error(exc: ValidationError) -> None:
    """Pretty-print missing or invalid environment variables.

    Because the exception bubbles up during module import it can be tricky to
    spot which variable is responsible, so the structured error payload is
    written to stderr before the exception is re-raised.
    """

    print("Configuration error while loading environment variables:", file=sys.stderr)

    details = exc.errors()
    if details:
        for error in details:
            location = ".".join(str(part) for part in error.get("loc", ()))
            message = error.get("msg", "Unknown validation error")
            type_name = error.get("type")
            hint_parts = [message]
            if type_name:
                hint_parts.append(f"(type={type_name})")
            print(f"  - {location}: {' '.join(hint_parts)}", file=sys.stderr)
    else:
        print(exc, file=sys.stderr)


try:
    settings = Settings()
except ValidationError as exc:  # pragma: no cover - exercised at runtime
    _log_settings_validation_error(exc)
    raise
