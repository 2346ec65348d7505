# backend/stockledger/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///stockledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Platform fee charged on each sale when the merchant has no own rate.
    # Basis points (e.g., 250 = 2.5%)
    DEFAULT_TRANSACTION_FEE_BPS = int(os.environ.get("DEFAULT_TRANSACTION_FEE_BPS", "0"))

    # Low-stock alerts are queued after commit; disable for bulk imports.
    LOW_STOCK_ALERTS_ENABLED = _env_bool("LOW_STOCK_ALERTS_ENABLED", True)
    DEFAULT_LOW_STOCK_THRESHOLD = int(os.environ.get("DEFAULT_LOW_STOCK_THRESHOLD", "5"))
