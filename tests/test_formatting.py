from datetime import date, datetime

from frog_portal.utils.formatting import (
    format_date, format_datetime, format_bytes, format_currency, detect_currency, format_intake_months,
    application_status_label, status_badge, progress_color
)


class TestDates:
    def test_format_date_from_iso_string(self):
        assert format_date("2025-04-01") == "2025年04月01日"

    def test_format_date_accepts_date_and_utc_suffix(self):
        assert format_date(date(2024, 12, 5)) == "2024年12月05日"
        assert format_date("2024-12-05T10:00:00Z") == "2024年12月05日"

    def test_format_date_empty_or_invalid(self):
        assert format_date(None) == ""
        assert format_date("") == ""
        assert format_date("not a date") == ""

    def test_format_datetime(self):
        assert format_datetime(datetime(2025, 4, 1, 9, 5)) == "2025/4/1 09:05"
        assert format_datetime(None) == "未設定"
        assert format_datetime("yesterday") == "無効な日付"


class TestBytes:
    def test_zero(self):
        assert format_bytes(0) == "0 Bytes"

    def test_negative_size(self):
        assert format_bytes(-1) == "0 Bytes"
        assert format_bytes(-2048) == "0 Bytes"

    def test_units(self):
        assert format_bytes(512) == "512 Bytes"
        assert format_bytes(1536) == "1.5 KB"
        assert format_bytes(1024 * 1024) == "1 MB"

    def test_decimals(self):
        assert format_bytes(1234567, decimals=1) == "1.2 MB"


class TestCurrency:
    def test_yen_has_no_decimals(self):
        assert format_currency(1000) == "￥1,000"

    def test_canadian_dollars(self):
        assert format_currency(1234.5, "CAD") == "CA$1,234.50"

    def test_unknown_currency_uses_code(self):
        assert format_currency(10, "CHF") == "CHF 10.00"

    def test_detect_currency(self):
        assert detect_currency("CA$18,500") == "CAD"
        assert detect_currency("$1,200") == "USD"
        assert detect_currency("AUD 30,000") == "AUD"
        assert detect_currency("¥500,000") == "JPY"
        assert detect_currency("要問合せ") is None
        assert detect_currency(None) is None


class TestLabels:
    def test_intake_months_unique_and_sorted(self):
        dates = [{"month": 9}, {"month": 1}, {"month": 9}, {"month": None}]
        assert format_intake_months(dates) == "1月、9月"

    def test_intake_months_unknown(self):
        assert format_intake_months([]) == "要問合せ"

    def test_application_status_label(self):
        assert application_status_label("submitted") == "申請済み"
        assert application_status_label("archived") == "archived"

    def test_status_badge(self):
        assert status_badge("success") == {"variant": "success", "label": "完了"}
        assert status_badge("pending") == {"variant": "pending", "label": "処理中"}
        assert status_badge("whatever") == {"variant": "default", "label": "ステータス"}

    def test_status_badge_for_workflow_statuses(self):
        assert status_badge("approved")["variant"] == "success"
        assert status_badge("rejected")["variant"] == "error"
        assert status_badge("submitted")["variant"] == "info"
        assert status_badge("reviewing")["variant"] == "pending"
        assert status_badge("draft")["variant"] == "default"
        assert status_badge(None)["variant"] == "default"

    def test_progress_color_thresholds(self):
        assert progress_color(100) == "green"
        assert progress_color(80) == "blue"
        assert progress_color(60) == "light_blue"
        assert progress_color(30) == "amber"
        assert progress_color(10) == "gray"
