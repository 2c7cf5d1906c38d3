"""Tests for settings, request context and log masking."""

from learnpath.config.settings import Settings
from learnpath.core.context import (
    RequestContext,
    clear_context,
    get_context,
    get_correlation_id,
    get_request_id,
    set_request_id,
)
from learnpath.core.logging import filter_sensitive_data, mask_value


class TestSettings:
    """Tests for Settings defaults and derived flags."""

    def test_defaults(self) -> None:
        settings = Settings(_env_file=None)

        assert settings.payment_currency == "INR"
        assert settings.progress_write_max_attempts == 3
        assert settings.purchase_status_cache_seconds == 300

    def test_razorpay_configured(self) -> None:
        assert Settings(razorpay_key_id="id", razorpay_key_secret="secret").razorpay_configured
        assert not Settings(razorpay_key_id="id", razorpay_key_secret=None).razorpay_configured
        assert not Settings(razorpay_key_id=None, razorpay_key_secret="secret").razorpay_configured

    def test_environment_flags(self) -> None:
        assert Settings(environment="production").is_production
        assert Settings(environment="testing").is_testing
        assert not Settings(environment="testing").is_development

    def test_reads_environment(self, monkeypatch) -> None:
        monkeypatch.setenv("RAZORPAY_KEY_ID", "rzp_live_env")
        monkeypatch.setenv("PROGRESS_WRITE_MAX_ATTEMPTS", "5")

        settings = Settings()

        assert settings.razorpay_key_id == "rzp_live_env"
        assert settings.progress_write_max_attempts == 5


class TestRequestContext:
    """Tests for contextvars used by the log processors."""

    def test_context_manager_restores(self) -> None:
        set_request_id("outer")

        with RequestContext(correlation_id="reconcile-1", user_id="u-1"):
            context = get_context()
            assert context["correlation_id"] == "reconcile-1"
            assert context["user_id"] == "u-1"
            assert context["request_id"] != "outer"

        assert get_request_id() == "outer"
        assert get_correlation_id() is None

    def test_context_keys(self) -> None:
        clear_context()

        with RequestContext(request_id="req-1", correlation_id="reconcile-1"):
            assert get_context() == {
                "request_id": "req-1",
                "correlation_id": "reconcile-1",
            }


class TestMasking:
    """Tests for sensitive value masking."""

    def test_masks_signature(self) -> None:
        assert mask_value("razorpay_signature", "abcdef123456") == "ab********56"

    def test_short_values(self) -> None:
        assert mask_value("token", "abc") == "***"

    def test_leaves_other_keys(self) -> None:
        assert mask_value("order_id", "order_123") == "order_123"

    def test_filter_nested(self) -> None:
        event = {
            "event": "payment_received",
            "payload": {"razorpay_payment_id": "pay_1", "razorpay_signature": "deadbeef"},
        }

        filtered = filter_sensitive_data(None, "info", event)

        assert filtered["payload"]["razorpay_payment_id"] == "pay_1"
        assert filtered["payload"]["razorpay_signature"] == "de****ef"
