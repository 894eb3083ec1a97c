# backend/zes_pos/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # Remote relational backend when DATABASE_URL is set (e.g. postgresql+psycopg://...),
    # otherwise the embedded SQLite file in the instance folder.
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///zes_pos.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Tax in basis points applied to the invoice subtotal (0 = no tax)
    TAX_RATE_BPS = int(os.environ.get("TAX_RATE_BPS", "0"))

    # Products with stock strictly below this count as low stock on the dashboard
    LOW_STOCK_THRESHOLD = int(os.environ.get("LOW_STOCK_THRESHOLD", "10"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Session lifetimes, in minutes
    SESSION_ABSOLUTE_TIMEOUT_MINUTES = int(os.environ.get("SESSION_ABSOLUTE_TIMEOUT_MINUTES", str(24 * 60)))
    SESSION_IDLE_TIMEOUT_MINUTES = int(os.environ.get("SESSION_IDLE_TIMEOUT_MINUTES", "120"))

    # Retry budget for transactions that hit lock or version conflicts
    LEDGER_RETRY_ATTEMPTS = int(os.environ.get("LEDGER_RETRY_ATTEMPTS", "3"))
