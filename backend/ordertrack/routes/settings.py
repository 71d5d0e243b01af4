# Overview: Flask API routes for application settings; parses input and returns JSON responses.

from flask import Blueprint, request

from ..services import settings_service
from . import DOMAIN_ERRORS, error_response

settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("/alerts")
def get_alert_settings_route():
    """Alert thresholds in days: stored values over configured defaults."""
    return settings_service.get_alert_thresholds().to_dict()


@settings_bp.route("/alerts", methods=["PUT", "PATCH"])
def update_alert_settings_route():
    """
    Request body (any subset):
    {"delivery_alert_days": 3, "payment_alert_days": 7, "birthday_alert_days": 7}
    """
    data = request.get_json(silent=True) or {}
    try:
        thresholds = settings_service.update_alert_thresholds(data)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return thresholds.to_dict()
