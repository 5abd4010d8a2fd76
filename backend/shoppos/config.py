# backend/shoppos/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/shoppos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",  # optional alternative location
        "sqlite:///shoppos.sqlite3",  # default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Business dates are bucketed in the shop's timezone; this is the fallback
    DEFAULT_SHOP_TIMEZONE = os.environ.get("SHOP_TIMEZONE", "Asia/Dhaka")

    SALES_INVOICE_DEFAULT_PREFIX = "INV"
    SALE_RETURN_DEFAULT_PREFIX = "RET"

    # Retry policy for lock/deadlock failures (see services/concurrency.py)
    DB_RETRY_ATTEMPTS = int(os.environ.get("DB_RETRY_ATTEMPTS", "3"))
    DB_RETRY_BACKOFF = 0.1

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
