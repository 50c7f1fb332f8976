"""Tests for DispatchConfig validation, env loading and repr masking."""

from __future__ import annotations

import httpx
import pytest

from retrydispatch.config import DispatchConfig
from retrydispatch.env import EnvSource
from retrydispatch.errors import DispatchConfigError
from retrydispatch.http.policy import RetryPolicy


class TestDispatchConfig:
    def test_defaults(self):
        cfg = DispatchConfig()
        assert cfg.base_url == ""
        assert cfg.timeout_seconds == 5.0
        assert cfg.connect_timeout_seconds == 10.0
        assert cfg.follow_redirects is True
        assert cfg.http_proxy is None
        assert cfg.retry_on == (httpx.RequestError,)
        assert cfg.retry_policy == RetryPolicy()
        assert cfg.metrics is None

    def test_policy_loaded_from_environment(self, monkeypatch):
        monkeypatch.setenv("MAX_ATTEMPTS", "2")
        assert DispatchConfig().retry_policy.max_attempts == 2

    def test_explicit_policy_kept(self, fast_policy):
        assert DispatchConfig(retry_policy=fast_policy).retry_policy is fast_policy

    @pytest.mark.parametrize("field", ["timeout_seconds", "connect_timeout_seconds"])
    @pytest.mark.parametrize("value", [0, -1.0])
    def test_non_positive_timeouts_rejected(self, field, value):
        with pytest.raises(DispatchConfigError) as exc_info:
            DispatchConfig(**{field: value})
        assert exc_info.value.context["key"] == field

    def test_empty_retry_on_rejected(self):
        with pytest.raises(DispatchConfigError):
            DispatchConfig(retry_on=())

    def test_timeout_property(self):
        t = DispatchConfig(timeout_seconds=2.0, connect_timeout_seconds=3.0).timeout
        assert t.read == 2.0
        assert t.connect == 3.0

    def test_repr_masks_credentials(self):
        cfg = DispatchConfig(headers={"Authorization": "Bearer sk-1234567890abcdef"})
        text = repr(cfg)
        assert "sk-1234567890abcdef" not in text
        assert "<redacted" in text
        assert text.startswith("DispatchConfig(")


class TestFromEnv:
    def test_reads_keys(self):
        src = EnvSource(None, environ={
            "DISPATCH_BASE_URL": "https://api.example.com",
            "DISPATCH_TIMEOUT_SECONDS": "2.5",
            "DISPATCH_CONNECT_TIMEOUT_SECONDS": "1",
            "DISPATCH_HTTP_PROXY": "http://proxy:3128",
            "MAX_ATTEMPTS": "4",
        })
        cfg = DispatchConfig.from_env(src)
        assert cfg.base_url == "https://api.example.com"
        assert cfg.timeout_seconds == 2.5
        assert cfg.connect_timeout_seconds == 1.0
        assert cfg.http_proxy == "http://proxy:3128"
        assert cfg.retry_policy.max_attempts == 4

    def test_overrides_win(self, fast_policy):
        src = EnvSource(None, environ={"DISPATCH_BASE_URL": "https://a"})
        cfg = DispatchConfig.from_env(src, base_url="https://b", retry_policy=fast_policy)
        assert cfg.base_url == "https://b"
        assert cfg.retry_policy is fast_policy

    def test_defaults_when_empty(self):
        cfg = DispatchConfig.from_env(EnvSource(None, environ={}))
        assert cfg.base_url == ""
        assert cfg.http_proxy is None
        assert cfg.retry_policy == RetryPolicy()

    def test_invalid_timeout_from_env_raises(self):
        src = EnvSource(None, environ={"DISPATCH_TIMEOUT_SECONDS": "0"})
        with pytest.raises(DispatchConfigError):
            DispatchConfig.from_env(src)

    @pytest.mark.parametrize("raw, expected", [("false", False), ("0", False), ("yes", True)])
    def test_follow_redirects(self, raw, expected):
        src = EnvSource(None, environ={"DISPATCH_FOLLOW_REDIRECTS": raw})
        assert DispatchConfig.from_env(src).follow_redirects is expected

    def test_follow_redirects_defaults_to_true(self):
        src = EnvSource(None, environ={"DISPATCH_FOLLOW_REDIRECTS": "sometimes"})
        assert DispatchConfig.from_env(src).follow_redirects is True

    def test_non_finite_timeout_uses_default(self):
        src = EnvSource(None, environ={"DISPATCH_TIMEOUT_SECONDS": "inf"})
        assert DispatchConfig.from_env(src).timeout_seconds == 5.0

    def test_reads_dotenv_in_cwd(self, tmp_path):
        (tmp_path / ".env").write_text("DISPATCH_BASE_URL=https://from-file\n")
        assert DispatchConfig.from_env().base_url == "https://from-file"
