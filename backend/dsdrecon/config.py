# backend/dsdrecon/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/dsdrecon.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location (postgresql+psycopg://...)
        "sqlite:///dsdrecon.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Document extraction service (OCR/vision). Unset URL disables /api/dsd/extract.
    EXTRACTION_SERVICE_URL = os.environ.get("EXTRACTION_SERVICE_URL")
    EXTRACTION_SERVICE_KEY = os.environ.get("EXTRACTION_SERVICE_KEY")
    EXTRACTION_TIMEOUT_SECONDS = float(os.environ.get("EXTRACTION_TIMEOUT_SECONDS", "60"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
