# backend/repairdesk/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/repairdesk.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///repairdesk.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Used when a store has no "warranty.default_period_days" config row
    DEFAULT_WARRANTY_PERIOD_DAYS = int(os.environ.get("DEFAULT_WARRANTY_PERIOD_DAYS", "30"))

    # Local blob root for ticket images
    UPLOAD_FOLDER = os.environ.get("UPLOAD_FOLDER", "uploads")

    # Header carrying the caller's store, set by the auth proxy in front of us
    STORE_HEADER = os.environ.get("STORE_HEADER", "X-Store-Id")
