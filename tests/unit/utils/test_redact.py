"""Tests for utils/redact.py"""

from __future__ import annotations

import httpx
import pytest

from retrydispatch.utils.redact import mask_secret, redact_headers, redact_mapping


class TestMaskSecret:
    def test_long_value_keeps_suffix(self):
        assert mask_secret("PKABCDEFGHIJ1234") == "<redacted:...1234>"

    @pytest.mark.parametrize("value", ["short", "", None, 12345678901234])
    def test_short_or_non_string_fully_masked(self, value):
        assert mask_secret(value) == "<redacted>"


class TestRedactMapping:
    @pytest.mark.parametrize("key", [
        "Authorization",
        "APCA-API-SECRET-KEY",
        "APCA-API-KEY-ID",
        "x-api-key",
        "access_token",
        "Cookie",
        "password",
    ])
    def test_sensitive_keys(self, key):
        assert redact_mapping({key: "value-that-is-long"})[key].startswith("<redacted")

    def test_plain_keys_untouched(self):
        data = {"method": "GET", "attempt": 2}
        assert redact_mapping(data) == data

    def test_bearer_fragment_in_value(self):
        out = redact_mapping({"error": "got 401 using Bearer abc.def.ghi today"})
        assert out["error"] == "got 401 using Bearer <redacted> today"

    def test_nested(self):
        out = redact_mapping({"outer": {"token": "t"}, "items": [{"secret": "s"}, "Bearer x"]})
        assert out == {
            "outer": {"token": "<redacted>"},
            "items": [{"secret": "<redacted>"}, "Bearer <redacted>"],
        }

    def test_input_not_mutated(self):
        data = {"token": "abc"}
        redact_mapping(data)
        assert data == {"token": "abc"}


class TestRedactHeaders:
    def test_none_and_empty(self):
        assert redact_headers(None) == {}
        assert redact_headers({}) == {}

    def test_httpx_headers(self):
        headers = httpx.Headers({"Authorization": "Bearer 0123456789abcdef", "Accept": "x"})
        out = redact_headers(headers)
        assert out["authorization"] == "<redacted:...cdef>"
        assert out["accept"] == "x"
