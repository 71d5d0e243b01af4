import json

import pytest

from ordertrack.extensions import db
from ordertrack.models import AppSetting
from ordertrack.services import settings_service
from ordertrack.services.alert_service import AlertThresholds
from ordertrack.validation import ValidationError


class TestAlertSettings:
    def test_defaults_come_from_config(self, db_session):
        assert settings_service.get_alert_thresholds() == AlertThresholds(
            delivery_alert_days=3, payment_alert_days=7, birthday_alert_days=7
        )

    def test_partial_update_is_merged_and_stored(self, db_session):
        settings_service.update_alert_thresholds({"payment_alert_days": 14})
        thresholds = settings_service.update_alert_thresholds({"birthdayAlertDays": 3})

        assert thresholds.to_dict() == {
            "delivery_alert_days": 3,
            "payment_alert_days": 14,
            "birthday_alert_days": 3,
        }
        row = db.session.query(AppSetting).filter_by(key=settings_service.ALERT_SETTINGS_KEY).one()
        assert json.loads(row.value)["payment_alert_days"] == 14

    def test_invalid_value_not_stored(self, db_session):
        with pytest.raises(ValidationError):
            settings_service.update_alert_thresholds({"delivery_alert_days": "soon"})
        assert db.session.query(AppSetting).count() == 0
