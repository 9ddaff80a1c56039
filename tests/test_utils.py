"""Formatting helper tests."""

from datetime import date, datetime

import pytest

from packportal.utils import (
    document_date,
    format_count,
    format_currency,
    format_weight,
    normalize_code,
    sanitize_filename_part,
    truncate_cents,
)


class TestFormatting:

    def test_currency(self):
        assert format_currency(2240) == "$2,240.00"
        assert format_currency(625, 4) == "$625.0000"

    def test_weight(self):
        assert format_weight(1234.5) == "1234.50"

    def test_count(self):
        assert format_count(112000) == "112,000"
        assert format_count(1000.0) == "1,000"

    @pytest.mark.parametrize("value, expected", [(12.349, 12.34), (2.4888, 2.48), (3.0, 3.0)])
    def test_truncate_cents(self, value, expected):
        assert truncate_cents(value) == pytest.approx(expected)

    def test_normalize_code(self):
        assert normalize_code("  pt-1 ") == "PT-1"
        assert normalize_code(None) == ""


class TestDocumentDate:

    def test_iso_string_with_time(self):
        assert document_date("2025-03-15T08:00:00") == "15.03.2025"

    def test_date_objects(self):
        assert document_date(date(2025, 3, 5)) == "05.03.2025"
        assert document_date(datetime(2025, 12, 31, 23, 59)) == "31.12.2025"

    def test_sanitize(self):
        assert sanitize_filename_part("Yuma, AZ #3") == "YUMA__AZ__3"
