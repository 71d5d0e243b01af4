# Overview: Time-threshold alerts over an order/customer snapshot; pure, no persisted state.

"""
Alert Engine

ALERT TYPES:
- delivery: open order, goods still owed, order age >= delivery_alert_days
- payment:  open order, money still owed, order age >= payment_alert_days
- birthday: next birthday within birthday_alert_days (wraps the year end)

SEVERITY:
- delivery/payment: high when order age >= 2x threshold, else medium
- birthday: high when today or tomorrow, else low

ORDERING:
    high birthday alerts, then delivery/payment alerts (high before medium,
    larger days_overdue first), then remaining birthday alerts (soonest first)

Dismissal is the caller's concern; nothing here is persisted.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from ..money import round_display, to_json_amount
from ..validation import ValidationError, to_int
from ordertrack.time_utils import today
from .reporting_service import CustomerSnapshot, OrderSnapshot, load_customer_snapshots, load_order_snapshots


ALERT_DELIVERY = "delivery"
ALERT_PAYMENT = "payment"
ALERT_BIRTHDAY = "birthday"

SEVERITY_HIGH = "high"
SEVERITY_MEDIUM = "medium"
SEVERITY_LOW = "low"


@dataclass(frozen=True)
class AlertThresholds:
    delivery_alert_days: int
    payment_alert_days: int
    birthday_alert_days: int

    @classmethod
    def from_dict(cls, data: dict, defaults: "AlertThresholds | None" = None) -> "AlertThresholds":
        """
        Accepts snake_case or camelCase keys; missing keys fall back to
        `defaults`. Values must be non-negative integers.
        """
        values = {}
        for name in ("delivery_alert_days", "payment_alert_days", "birthday_alert_days"):
            head, *rest = name.split("_")
            camel = head + "".join(part.title() for part in rest)
            raw = data.get(name, data.get(camel))
            if raw is None:
                if defaults is None:
                    raise ValidationError(f"{name} is required", field=name)
                values[name] = getattr(defaults, name)
                continue
            value = to_int(raw, name)
            if value < 0:
                raise ValidationError(f"{name} must be >= 0", field=name)
            values[name] = value
        return cls(**values)

    def to_dict(self) -> dict:
        return {
            "delivery_alert_days": self.delivery_alert_days,
            "payment_alert_days": self.payment_alert_days,
            "birthday_alert_days": self.birthday_alert_days,
        }


@dataclass(frozen=True)
class Alert:
    id: str
    type: str
    severity: str
    customer_id: int
    customer_name: str | None
    message: str
    detail: str
    order_id: int | None = None
    days_overdue: int | None = None
    days_until: int | None = None
    amount: object = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "severity": self.severity,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "order_id": self.order_id,
            "message": self.message,
            "detail": self.detail,
            "days_overdue": self.days_overdue,
            "days_until": self.days_until,
            "amount": to_json_amount(self.amount) if self.amount is not None else None,
        }


def next_birthday(birthday: date, on: date) -> date:
    """
    Next occurrence of `birthday` on or after `on`.

    Feb 29 birthdays fall on Feb 28 in non-leap years.
    """
    def _in_year(year: int) -> date:
        try:
            return birthday.replace(year=year)
        except ValueError:
            return date(year, 2, 28)

    candidate = _in_year(on.year)
    if candidate < on:
        candidate = _in_year(on.year + 1)
    return candidate


def _order_severity(days_since: int, threshold: int) -> str:
    return SEVERITY_HIGH if days_since >= threshold * 2 else SEVERITY_MEDIUM


def _order_alerts(order: OrderSnapshot, thresholds: AlertThresholds, on: date) -> list[Alert]:
    if order.is_completed:
        return []

    alerts = []
    days_since = (on - order.order_date).days
    unit = order.unit or "units"

    remaining_delivery = order.remaining_delivery
    if remaining_delivery > 0 and days_since >= thresholds.delivery_alert_days:
        alerts.append(Alert(
            id=f"{ALERT_DELIVERY}-{order.order_id}",
            type=ALERT_DELIVERY,
            severity=_order_severity(days_since, thresholds.delivery_alert_days),
            customer_id=order.customer_id,
            customer_name=order.customer_name,
            order_id=order.order_id,
            message=f"Order for {order.customer_name} not fully delivered after {days_since} days",
            detail=f"{remaining_delivery} {unit} still to deliver",
            days_overdue=days_since - thresholds.delivery_alert_days,
        ))

    remaining_payment = order.remaining_payment
    if remaining_payment > 0 and days_since >= thresholds.payment_alert_days:
        alerts.append(Alert(
            id=f"{ALERT_PAYMENT}-{order.order_id}",
            type=ALERT_PAYMENT,
            severity=_order_severity(days_since, thresholds.payment_alert_days),
            customer_id=order.customer_id,
            customer_name=order.customer_name,
            order_id=order.order_id,
            message=f"{order.customer_name} still owes {to_json_amount(round_display(remaining_payment))}",
            detail=f"{days_since} days since the order date",
            days_overdue=days_since - thresholds.payment_alert_days,
            amount=remaining_payment,
        ))

    return alerts


def _birthday_alert(customer: CustomerSnapshot, thresholds: AlertThresholds, on: date) -> Alert | None:
    if customer.birthday is None:
        return None
    upcoming = next_birthday(customer.birthday, on)
    days_until = (upcoming - on).days
    if days_until > thresholds.birthday_alert_days:
        return None

    if days_until == 0:
        detail = "Birthday is today"
    elif days_until == 1:
        detail = "Birthday is tomorrow"
    else:
        detail = f"Birthday in {days_until} days ({upcoming.isoformat()})"

    return Alert(
        id=f"{ALERT_BIRTHDAY}-{customer.customer_id}",
        type=ALERT_BIRTHDAY,
        severity=SEVERITY_HIGH if days_until <= 1 else SEVERITY_LOW,
        customer_id=customer.customer_id,
        customer_name=customer.name,
        message=f"Upcoming birthday: {customer.name}",
        detail=detail,
        days_until=days_until,
    )


def _sort_key(alert: Alert):
    if alert.type == ALERT_BIRTHDAY:
        group = 0 if alert.severity == SEVERITY_HIGH else 2
        return (group, 0, alert.days_until, alert.id)
    severity_rank = 0 if alert.severity == SEVERITY_HIGH else 1
    return (1, severity_rank, -alert.days_overdue, alert.id)


def compute_alerts(
    orders: list[OrderSnapshot],
    customers: list[CustomerSnapshot],
    thresholds: AlertThresholds,
    on: date,
) -> list[Alert]:
    """All alerts due on `on`, in display order."""
    alerts: list[Alert] = []
    for order in orders:
        alerts.extend(_order_alerts(order, thresholds, on))
    for customer in customers:
        alert = _birthday_alert(customer, thresholds, on)
        if alert is not None:
            alerts.append(alert)
    alerts.sort(key=_sort_key)
    return alerts


def current_alerts(thresholds: AlertThresholds, on: date | None = None) -> list[Alert]:
    """Alerts over the live database snapshot (open orders, all customers)."""
    return compute_alerts(
        load_order_snapshots(include_completed=False),
        load_customer_snapshots(),
        thresholds,
        on or today(),
    )
