"""
Tests for pos_ledger/config.py defaults.
"""
from pos_ledger.config import Settings


def test_defaults(monkeypatch):
    monkeypatch.delenv("GATEWAY_TIMEOUT_SECONDS", raising=False)
    monkeypatch.delenv("SALES_TAX_RATE", raising=False)
    settings = Settings(_env_file=None)

    assert settings.gateway_timeout_seconds == 30.0
    assert settings.sales_tax_rate == 0.0
    assert settings.log_format == "standard"


def test_every_setting_is_consumed():
    # Amounts are plain integer cents; there is no currency knob to drift out of sync
    assert "currency" not in Settings.model_fields


def test_timeout_from_environment(monkeypatch):
    monkeypatch.setenv("GATEWAY_TIMEOUT_SECONDS", "2.5")
    assert Settings(_env_file=None).gateway_timeout_seconds == 2.5
