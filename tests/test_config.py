import pytest
from decimal import Decimal

from pydantic import ValidationError

from printshop.core.config import Settings, get_settings


def test_defaults():
    s = Settings(PUBLIC_BASE_URL="http://pay.test")
    assert s.PROJECT_NAME == "PrintShop"
    assert s.PAYMENT_WINDOW_MINUTES == 60
    assert s.CURRENCY == "IDR"
    assert s.CLIENT_TAX_RATE == Decimal("0")
    assert s.PURCHASE_TAX_RATE == Decimal("0.11")
    assert s.DEFAULT_WHITELISTED_VENDORS == ["kubus", "fma"]
    assert s.is_testing


def test_settings_singleton():
    assert get_settings() is get_settings()


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("Kubus, FMA ,", ["kubus", "fma"]),
        ('["Sinar", " jaya "]', ["sinar", "jaya"]),
        (["A", "b"], ["a", "b"]),
    ],
)
def test_vendor_list_parsing(raw, expected):
    assert Settings(DEFAULT_WHITELISTED_VENDORS=raw).DEFAULT_WHITELISTED_VENDORS == expected


def test_vendor_list_from_env(monkeypatch):
    monkeypatch.setenv("DEFAULT_WHITELISTED_VENDORS", "one,Two")
    assert Settings().DEFAULT_WHITELISTED_VENDORS == ["one", "two"]


def test_invalid_log_format():
    with pytest.raises(ValidationError):
        Settings(LOG_FORMAT="xml")


def test_payment_window_must_be_positive():
    with pytest.raises(ValidationError):
        Settings(PAYMENT_WINDOW_MINUTES=0)


def test_public_url():
    assert Settings(PUBLIC_BASE_URL="https://shop.example.com/").public_url == "https://shop.example.com"
    assert Settings(PUBLIC_BASE_URL="", HOST="0.0.0.0", PORT=8080).public_url == "http://0.0.0.0:8080"


def test_dump_settings_safe_masks_database_url():
    s = Settings(DATABASE_URL="postgresql://user:secret@db:5432/printshop")
    dumped = s.dump_settings_safe()
    assert "secret" not in dumped["DATABASE_URL"]
    assert dumped["PURCHASE_TAX_RATE"] == "0.11"
