"""
Unit tests for the calendar day model.
"""

import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from domain.calendar_model import generate_days_info, WEEKDAY_LABELS


class TestGenerateDaysInfo:
    """Tests for generate_days_info()."""

    def test_month_lengths(self):
        """Test day counts, including leap years."""
        assert len(generate_days_info(2024, 0)) == 31
        assert len(generate_days_info(2024, 1)) == 29
        assert len(generate_days_info(2023, 1)) == 28
        assert len(generate_days_info(2024, 3)) == 30

    def test_days_are_ordered_from_one(self):
        days = generate_days_info(2024, 0)
        assert [d.day for d in days] == list(range(1, 32))

    def test_weekday_labels_and_weekends(self):
        """1 January 2024 is a Monday; 6 and 7 are the first weekend."""
        days = generate_days_info(2024, 0)

        assert days[0].weekday_label == "Mon"
        assert days[0].is_weekend is False
        assert days[5].weekday_label == "Sat"
        assert days[5].is_weekend is True
        assert days[6].weekday_label == "Sun"
        assert days[6].is_weekend is True
        assert days[7].is_weekend is False

    def test_labels_come_from_fixed_table(self):
        days = generate_days_info(2025, 5)
        assert all(d.weekday_label in WEEKDAY_LABELS for d in days)

    def test_memoized(self):
        """Same (year, month) returns the same tuple."""
        assert generate_days_info(2024, 6) is generate_days_info(2024, 6)

    def test_invalid_month_raises(self):
        with pytest.raises(Exception):
            generate_days_info(2024, 12)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
