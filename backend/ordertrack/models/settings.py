from __future__ import annotations

from ..extensions import db
from ordertrack.time_utils import to_utc_z


class AppSetting(db.Model):
    """Application-level key/value settings (alert thresholds)."""
    __tablename__ = "app_settings"

    key = db.Column(db.String(64), primary_key=True)
    value = db.Column(db.Text, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "value": self.value,
            "updated_at": to_utc_z(self.updated_at),
        }
