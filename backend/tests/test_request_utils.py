"""Tests for request utility functions."""

from unittest.mock import MagicMock

from app.core.request_utils import _is_valid_ip, get_client_ip


class TestIsValidIP:
    """Tests for _is_valid_ip function."""

    def test_valid_addresses(self):
        assert _is_valid_ip("192.168.1.1") is True
        assert _is_valid_ip("8.8.8.8") is True
        assert _is_valid_ip("::1") is True
        assert _is_valid_ip("2001:db8::1") is True

    def test_invalid_addresses(self):
        assert _is_valid_ip("") is False
        assert _is_valid_ip("not-an-ip") is False
        assert _is_valid_ip("256.1.1.1") is False
        assert _is_valid_ip("192.168.1.1:8080") is False
        assert _is_valid_ip(" 192.168.1.1") is False


class TestGetClientIP:
    """Tests for get_client_ip function."""

    def _create_mock_request(self, x_real_ip=None, x_forwarded_for=None, client_host=None):
        """Create a mock FastAPI request."""
        request = MagicMock()

        headers = {}
        if x_real_ip is not None:
            headers["X-Real-IP"] = x_real_ip
        if x_forwarded_for:
            headers["X-Forwarded-For"] = x_forwarded_for

        request.headers.get = lambda key, default=None: headers.get(key, default)

        if client_host:
            request.client = MagicMock()
            request.client.host = client_host
        else:
            request.client = None

        return request

    def test_x_real_ip_from_localhost(self):
        """X-Real-IP is trusted only from the local reverse proxy."""
        request = self._create_mock_request(x_real_ip="5.6.7.8", client_host="127.0.0.1")
        assert get_client_ip(request) == "5.6.7.8"

    def test_x_real_ip_not_trusted_from_external(self):
        request = self._create_mock_request(x_real_ip="5.6.7.8", client_host="9.10.11.12")
        assert get_client_ip(request) == "9.10.11.12"

    def test_x_forwarded_for_ignored(self):
        request = self._create_mock_request(
            x_forwarded_for="1.2.3.4, 5.6.7.8", client_host="9.10.11.12"
        )
        assert get_client_ip(request) == "9.10.11.12"

    def test_invalid_x_real_ip_falls_back(self):
        request = self._create_mock_request(x_real_ip="invalid", client_host="127.0.0.1")
        assert get_client_ip(request) == "127.0.0.1"

    def test_whitespace_trimmed(self):
        request = self._create_mock_request(x_real_ip="  5.6.7.8 ", client_host="::1")
        assert get_client_ip(request) == "5.6.7.8"

    def test_no_ip_available(self):
        assert get_client_ip(self._create_mock_request()) is None
