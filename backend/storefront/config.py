# backend/storefront/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/storefront.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///storefront.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Document store transaction retry policy
    DOCUMENT_STORE_TRANSACTION_ATTEMPTS = int(os.environ.get("DOCUMENT_STORE_TRANSACTION_ATTEMPTS", "5"))
    DOCUMENT_STORE_RETRY_BACKOFF = float(os.environ.get("DOCUMENT_STORE_RETRY_BACKOFF", "0.05"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
