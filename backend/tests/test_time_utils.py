from datetime import date

import pytest

from ordertrack.time_utils import date_range_preset


class TestDateRangePreset:
    @pytest.mark.parametrize(
        "preset, expected",
        [
            ("this_month", (date(2026, 2, 1), date(2026, 2, 28))),
            ("last_month", (date(2026, 1, 1), date(2026, 1, 31))),
            ("this_quarter", (date(2026, 1, 1), date(2026, 3, 31))),
            ("last_quarter", (date(2025, 10, 1), date(2025, 12, 31))),
            ("this_year", (date(2026, 1, 1), date(2026, 12, 31))),
            ("last_year", (date(2025, 1, 1), date(2025, 12, 31))),
            ("all", (None, None)),
        ],
    )
    def test_presets(self, preset, expected):
        assert date_range_preset(preset, date(2026, 2, 14)) == expected

    def test_last_month_wraps_year(self):
        assert date_range_preset("last_month", date(2026, 1, 5)) == (date(2025, 12, 1), date(2025, 12, 31))

    def test_december_quarter(self):
        assert date_range_preset("this_quarter", date(2026, 12, 31)) == (date(2026, 10, 1), date(2026, 12, 31))

    def test_unknown_preset(self):
        with pytest.raises(ValueError):
            date_range_preset("fortnight", date(2026, 1, 1))
