"""
Unit tests for service settings.
"""
import pytest
from pydantic import ValidationError

from paywall.core.config import Settings


class TestSettings:
    """Test settings validation at startup."""

    def test_defaults(self):
        settings = Settings()
        assert settings.BSV_PAYMENT_DESCRIPTION == "Payment for request"
        assert settings.BSV_NONCE_TTL_SECONDS == 300

    @pytest.mark.parametrize("description", ["pay", "x" * 51])
    def test_payment_description_length(self, description):
        """The wallet only accepts descriptions of 5 to 50 characters."""
        with pytest.raises(ValidationError):
            Settings(BSV_PAYMENT_DESCRIPTION=description)

    def test_payment_description_from_environment(self, monkeypatch):
        monkeypatch.setenv("BSV_PAYMENT_DESCRIPTION", "Article access fee")
        assert Settings().BSV_PAYMENT_DESCRIPTION == "Article access fee"
