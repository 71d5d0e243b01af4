# backend/ordertrack/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/ordertrack.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///ordertrack.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Alert thresholds used until the application stores its own values
    DELIVERY_ALERT_DAYS = int(os.environ.get("DELIVERY_ALERT_DAYS", "3"))
    PAYMENT_ALERT_DAYS = int(os.environ.get("PAYMENT_ALERT_DAYS", "7"))
    BIRTHDAY_ALERT_DAYS = int(os.environ.get("BIRTHDAY_ALERT_DAYS", "7"))

    # Completed orders older than this are removed by `flask maintenance cleanup-orders`
    ORDER_RETENTION_DAYS = int(os.environ.get("ORDER_RETENTION_DAYS", "365"))
