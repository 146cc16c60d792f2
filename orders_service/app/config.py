import os


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./jpashop.db")
SQL_ECHO = _env_flag("SQL_ECHO", False)
DB_CONNECT_ATTEMPTS = int(os.getenv("DB_CONNECT_ATTEMPTS", "30"))

# Upper bound of parent ids per IN query when order item collections are batch loaded
DEFAULT_BATCH_FETCH_SIZE = int(os.getenv("DEFAULT_BATCH_FETCH_SIZE", "100"))
if DEFAULT_BATCH_FETCH_SIZE < 1:
    raise ValueError(f"DEFAULT_BATCH_FETCH_SIZE must be at least 1, got {DEFAULT_BATCH_FETCH_SIZE}")

# Create the schema and insert the sample members, books and orders on startup
INIT_DB = _env_flag("INIT_DB", True)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOGSTASH_HOST = os.getenv("LOGSTASH_HOST")
LOGSTASH_PORT = int(os.getenv("LOGSTASH_PORT", "5000"))

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))
