# Overview: Service-layer operations for application settings; alert thresholds persistence.

from __future__ import annotations

import json

from flask import current_app

from ..extensions import db
from ..models import AppSetting
from .alert_service import AlertThresholds
from .concurrency import run_with_retry

ALERT_SETTINGS_KEY = "alert_thresholds"


def default_alert_thresholds() -> AlertThresholds:
    return AlertThresholds(
        delivery_alert_days=current_app.config["DELIVERY_ALERT_DAYS"],
        payment_alert_days=current_app.config["PAYMENT_ALERT_DAYS"],
        birthday_alert_days=current_app.config["BIRTHDAY_ALERT_DAYS"],
    )


def get_alert_thresholds() -> AlertThresholds:
    """Stored thresholds, falling back to configuration defaults per key."""
    defaults = default_alert_thresholds()
    row = db.session.query(AppSetting).filter_by(key=ALERT_SETTINGS_KEY).first()
    if row is None:
        return defaults
    return AlertThresholds.from_dict(json.loads(row.value), defaults=defaults)


def update_alert_thresholds(patch: dict) -> AlertThresholds:
    """
    Merge `patch` into the stored thresholds.

    Raises:
        ValidationError: If a value is not a non-negative integer
    """
    def _op():
        thresholds = AlertThresholds.from_dict(patch, defaults=get_alert_thresholds())
        row = db.session.query(AppSetting).filter_by(key=ALERT_SETTINGS_KEY).first()
        if row is None:
            row = AppSetting(key=ALERT_SETTINGS_KEY, value="{}")
            db.session.add(row)
        row.value = json.dumps(thresholds.to_dict(), sort_keys=True)
        db.session.commit()
        return thresholds

    return run_with_retry(_op)
