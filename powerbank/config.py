import os

server_mode = os.getenv("SERVER_MODE", "development")
"""The operational mode of the server."""

database_url = os.getenv("DATABASE_URL", "sqlite://db.sqlite3")
"""The database the server persists to."""

api_root = "/api/v1"
"""The base url for the api."""

battery_check_interval = float(os.getenv("BATTERY_CHECK_INTERVAL", "5"))
"""The number of minutes between battery checks."""

lock_timeout = float(os.getenv("LOCK_TIMEOUT", "5"))
"""The number of seconds to wait for a row lock before giving up."""

sentry_dsn = os.getenv("SENTRY_DSN")
"""The sentry DSN, exceptions are only reported when this is set."""
