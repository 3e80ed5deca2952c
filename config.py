"""
Settings for the tablekit HTTP service, read from the environment.
"""
import os

# Database
DB_URL = os.getenv("TABLEKIT_DB_URL", "sqlite:///tablekit.db")
AUDIT_DB = os.getenv("TABLEKIT_AUDIT_DB") or None  # None -> auditing off
DEBUG = os.getenv("TABLEKIT_DEBUG", "false").lower() in ("1", "true", "yes")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DB_CONFIG = {
    "conn_str": DB_URL,
    "audit_db": AUDIT_DB,
    "debug": DEBUG,
}
