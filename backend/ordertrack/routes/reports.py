# Overview: Flask API routes for reporting, alerts and alert settings; parses input and returns JSON responses.

from flask import Blueprint, request

from ..services import alert_service, reporting_service, settings_service
from ..validation import ValidationError, to_date, to_int
from ordertrack.time_utils import DATE_PRESETS, date_range_preset, today
from . import DOMAIN_ERRORS, error_response

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/dashboard")
def dashboard_route():
    """pending_count, need_delivery_count, total_debt, debtor_count, total_revenue"""
    return reporting_service.dashboard_stats()


@reports_bp.get("/debts")
def debts_route():
    return {"items": reporting_service.debt_summary()}


@reports_bp.get("/alerts")
def alerts_route():
    """
    Current alerts.

    Query params (optional, override stored thresholds for this request):
    - delivery_alert_days, payment_alert_days, birthday_alert_days: int
    - on: ISO date to evaluate against (defaults to today)
    """
    try:
        stored = settings_service.get_alert_thresholds()
        thresholds = alert_service.AlertThresholds.from_dict(request.args.to_dict(), defaults=stored)
        on = request.args.get("on")
        alerts = alert_service.current_alerts(thresholds, on=to_date(on, "on") if on else None)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return {
        "thresholds": thresholds.to_dict(),
        "items": [a.to_dict() for a in alerts],
        "count": len(alerts),
        "high_count": sum(1 for a in alerts if a.severity == alert_service.SEVERITY_HIGH),
    }


def _period_from_args():
    """
    (start, end) from either `preset` or explicit `start` / `end` ISO dates.

    Explicit dates win over a preset; with neither, every order is included.
    """
    start = request.args.get("start")
    end = request.args.get("end")
    if start or end:
        return (
            to_date(start, "start") if start else None,
            to_date(end, "end") if end else None,
        )
    preset = request.args.get("preset", "all")
    if preset not in DATE_PRESETS:
        raise ValidationError(f"preset must be one of {', '.join(DATE_PRESETS)}", field="preset")
    return date_range_preset(preset, today())


@reports_bp.get("/period")
def period_route():
    """
    Sales overview plus per-customer and per-product totals.

    Query params:
    - preset: this_month | last_month | this_quarter | last_quarter |
      this_year | last_year | all (default all)
    - start, end: ISO dates, inclusive; override preset
    """
    try:
        start, end = _period_from_args()
        return reporting_service.period_report(start, end)
    except DOMAIN_ERRORS as e:
        return error_response(e)


@reports_bp.get("/products")
def products_route():
    """
    Per-product totals with a per-customer breakdown, best sellers first.

    Query params: preset / start / end as for /period; top: int (optional)
    """
    try:
        start, end = _period_from_args()
        top = request.args.get("top")
        top = to_int(top, "top") if top else None
        if top is not None and top <= 0:
            raise ValidationError("top must be > 0", field="top")
        items = reporting_service.product_report(start, end, top=top)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return {"items": items, "count": len(items)}
