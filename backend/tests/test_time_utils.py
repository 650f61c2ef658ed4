import unittest
from datetime import date, datetime, timezone, timedelta

from serialdesk.time_utils import add_months, parse_iso_date, parse_iso_datetime, to_utc_z


class AddMonthsTests(unittest.TestCase):
    def test_plain_year(self):
        self.assertEqual(add_months(date(2024, 1, 1), 12), date(2025, 1, 1))

    def test_clamps_to_month_end(self):
        self.assertEqual(add_months(date(2024, 1, 31), 1), date(2024, 2, 29))
        self.assertEqual(add_months(date(2023, 1, 31), 1), date(2023, 2, 28))
        self.assertEqual(add_months(date(2024, 8, 31), 1), date(2024, 9, 30))

    def test_leap_day_anniversary(self):
        self.assertEqual(add_months(date(2024, 2, 29), 12), date(2025, 2, 28))
        self.assertEqual(add_months(date(2024, 2, 29), 48), date(2028, 2, 29))

    def test_crosses_years(self):
        self.assertEqual(add_months(date(2024, 11, 15), 3), date(2025, 2, 15))
        self.assertEqual(add_months(date(2024, 6, 30), 120), date(2034, 6, 30))


class ParseTests(unittest.TestCase):
    def test_parse_date_variants(self):
        self.assertIsNone(parse_iso_date(None))
        self.assertIsNone(parse_iso_date("  "))
        self.assertEqual(parse_iso_date("2024-06-01"), date(2024, 6, 1))
        self.assertEqual(parse_iso_date(date(2024, 6, 1)), date(2024, 6, 1))
        self.assertEqual(parse_iso_date("2024-06-01T23:30:00-02:00"), date(2024, 6, 2))

    def test_parse_date_rejects_garbage(self):
        with self.assertRaises(ValueError):
            parse_iso_date("06/01/2024")

    def test_aware_datetime_normalized(self):
        dt = datetime(2024, 6, 1, 23, 30, tzinfo=timezone(timedelta(hours=-2)))
        self.assertEqual(parse_iso_date(dt), date(2024, 6, 2))
        self.assertEqual(parse_iso_datetime("2024-06-01T12:00:00Z"), datetime(2024, 6, 1, 12, 0))

    def test_to_utc_z(self):
        self.assertEqual(to_utc_z(datetime(2024, 6, 1, 12, 0, 5, 999)), "2024-06-01T12:00:05Z")
        self.assertIsNone(to_utc_z(None))


if __name__ == "__main__":
    unittest.main()
