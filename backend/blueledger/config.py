# backend/blueledger/config.py
from __future__ import annotations
import os


def _csv(value: str) -> set[str]:
    return {item.strip() for item in value.split(",") if item.strip()}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/blueledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///blueledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    CORS_ALLOWED_ORIGINS = _csv(os.environ.get(
        "CORS_ALLOWED_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
    ))

    # Single-record transaction retry policy (contention only)
    LEDGER_TX_MAX_ATTEMPTS = int(os.environ.get("LEDGER_TX_MAX_ATTEMPTS", "5"))
    LEDGER_TX_BACKOFF_BASE = float(os.environ.get("LEDGER_TX_BACKOFF_BASE", "0.02"))

    RESTOCK_MAX_AMOUNT = int(os.environ.get("RESTOCK_MAX_AMOUNT", "1000000"))
    WORKER_MIN_PASSWORD_LENGTH = int(os.environ.get("WORKER_MIN_PASSWORD_LENGTH", "6"))
    MESSAGE_LIST_LIMIT = int(os.environ.get("MESSAGE_LIST_LIMIT", "200"))

    SESSION_ABSOLUTE_TIMEOUT_HOURS = int(os.environ.get("SESSION_ABSOLUTE_TIMEOUT_HOURS", "24"))
    SESSION_IDLE_TIMEOUT_HOURS = int(os.environ.get("SESSION_IDLE_TIMEOUT_HOURS", "2"))

    SNAPSHOT_STREAM_HEARTBEAT_SECONDS = float(os.environ.get("SNAPSHOT_STREAM_HEARTBEAT_SECONDS", "15"))
