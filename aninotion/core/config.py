"""Environment-driven settings.

Stdlib only and no app imports, so any module can import it.
"""

import os


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


APP_ENV = os.getenv("APP_ENV", "development")

# JWT
SECRET_KEY = os.getenv("SECRET_KEY", "your-secret-key")  # don't use the default in production
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = _int_env("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24 * 7)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if APP_ENV == "production" else "DEBUG")

# Post derivation
EXCERPT_LENGTH = _int_env("EXCERPT_LENGTH", 150)
WORDS_PER_MINUTE = _int_env("WORDS_PER_MINUTE", 200)

# Format: "viewer:Viewer,paid:Paid,editor:Editor,admin:Admin"
USER_ROLES = os.getenv("USER_ROLES", "")
