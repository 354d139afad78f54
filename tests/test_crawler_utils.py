from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest
import requests

from src.crawlers.utils import (
    fetch_page,
    get_browser_headers,
    parse_datetime,
    parse_int_safe,
    to_absolute_url,
)


class TestParseIntSafe:
    def test_thousands_separators(self):
        assert parse_int_safe("12,345") == 12345
        assert parse_int_safe(" 1 204 views") == 1204

    def test_garbage_defaults_to_zero(self):
        assert parse_int_safe("") == 0
        assert parse_int_safe(None) == 0
        assert parse_int_safe("n/a") == 0
        assert parse_int_safe("-") == 0
        assert parse_int_safe("1-2") == 0

    def test_negative_clamped(self):
        assert parse_int_safe("-7") == 0


class TestParseDatetime:
    def test_zulu(self):
        assert parse_datetime("2025-03-01T14:05:00Z") == datetime(2025, 3, 1, 14, 5)

    def test_offset_converted_to_utc(self):
        assert parse_datetime("2025-03-01T16:30:00-05:00") == datetime(2025, 3, 1, 21, 30)

    def test_naive_kept(self):
        assert parse_datetime("2025-03-01T08:00:00") == datetime(2025, 3, 1, 8, 0)

    def test_invalid(self):
        assert parse_datetime("yesterday") is None
        assert parse_datetime(None) is None


def test_to_absolute_url():
    base = "https://forums.redflagdeals.com"
    assert to_absolute_url(base, "/deal-1/") == "https://forums.redflagdeals.com/deal-1/"
    assert to_absolute_url(base, "https://other.example/x") == "https://other.example/x"
    assert to_absolute_url(base, None) == ""


def test_browser_headers_optional_referer():
    assert "Referer" not in get_browser_headers()
    assert get_browser_headers("https://a.example/")["Referer"] == "https://a.example/"


class TestFetchPage:
    @patch("src.crawlers.utils.time.sleep")
    @patch("src.crawlers.utils.requests.get")
    def test_success(self, mock_get, mock_sleep):
        response = MagicMock()
        response.text = "<html><body><p class='x'>hi</p></body></html>"
        mock_get.return_value = response

        soup = fetch_page("https://example.test/", retries=2, timeout=3)

        assert soup.select_one("p.x").get_text() == "hi"
        assert mock_get.call_args.kwargs["timeout"] == 3
        mock_sleep.assert_not_called()

    @patch("src.crawlers.utils.time.sleep")
    @patch("src.crawlers.utils.requests.get")
    def test_retries_then_raises(self, mock_get, mock_sleep):
        mock_get.side_effect = requests.ConnectionError("boom")

        with pytest.raises(requests.ConnectionError):
            fetch_page("https://example.test/", retries=3, timeout=3)

        assert mock_get.call_count == 3
        assert mock_sleep.call_count == 2

    @patch("src.crawlers.utils.time.sleep")
    @patch("src.crawlers.utils.requests.get")
    def test_http_error_raises(self, mock_get, mock_sleep):
        response = MagicMock()
        response.raise_for_status.side_effect = requests.HTTPError("503")
        mock_get.return_value = response

        with pytest.raises(requests.HTTPError):
            fetch_page("https://example.test/", retries=1)
