"""Tests for settings, processor helpers and the CLI."""

from decimal import Decimal

import pytest

from storefront import PaymentStyle, Settings
from storefront.cli import create_parser, main
from storefront.domain import money, to_cents
from storefront.payments import InMemoryProcessor, parse_event

from .conftest import event_body, expect_error, expect_ok


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in ("PAYMENT_STYLE", "STRIPE_WEBHOOK_SECRET", "TAX_RATE"):
            monkeypatch.delenv(f"STOREFRONT_{name}", raising=False)

        settings = Settings.from_env()

        assert settings.payment_style is PaymentStyle.OFFLINE
        assert settings.webhook_secret is None
        assert settings.tax_rate == Decimal("0.10")

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("STOREFRONT_PAYMENT_STYLE", "REDIRECT")
        monkeypatch.setenv("STOREFRONT_STRIPE_WEBHOOK_SECRET", "whsec_x")
        monkeypatch.setenv("STOREFRONT_STALE_ORDER_DAYS", "3")
        monkeypatch.setenv("STOREFRONT_FRONTEND_URL", "https://shop.example")

        settings = Settings.from_env()

        assert settings.payment_style is PaymentStyle.REDIRECT
        assert settings.webhook_secret == "whsec_x"
        assert settings.stale_order_days == 3
        assert settings.success_url.startswith("https://shop.example/checkout/success")

    def test_invalid_style(self, monkeypatch):
        monkeypatch.setenv("STOREFRONT_PAYMENT_STYLE", "barter")
        with pytest.raises(ValueError):
            Settings.from_env()


class TestMoney:
    def test_rounds_half_up(self):
        assert money("2.345") == Decimal("2.35")
        assert money(3) == Decimal("3.00")

    def test_cents(self):
        assert to_cents(Decimal("25.00")) == 2500
        assert to_cents(Decimal("0.10")) == 10


class TestEvents:
    def test_parse(self):
        event = expect_ok(parse_event(event_body("evt_1", "checkout.session.completed", {"id": "cs_1"})))

        assert event.id == "evt_1"
        assert event.object_id == "cs_1"

    def test_missing_type(self):
        error = expect_error(parse_event(b'{"id": "evt_1"}'))
        assert error.code == "INVALID_PAYLOAD"

    def test_signature_roundtrip(self):
        processor = InMemoryProcessor()
        body = event_body("evt_1", "checkout.session.expired", {"id": "cs_1"})

        event = expect_ok(
            processor.verify_webhook_signature(body, processor.sign(body, "s3cret"), "s3cret")
        )
        assert event.type == "checkout.session.expired"

    def test_garbage_signature_header(self):
        processor = InMemoryProcessor()
        error = expect_error(processor.verify_webhook_signature(b"{}", "nonsense", "s3cret"))
        assert error.code == "INVALID_SIGNATURE"


class TestCli:
    def test_parser(self):
        args = create_parser().parse_args(["cancel-stale", "--days", "5"])
        assert args.days == 5

    def test_cancel_stale_on_fresh_database(self, monkeypatch, tmp_path, capsys):
        monkeypatch.setenv("STOREFRONT_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}")
        monkeypatch.setenv("STOREFRONT_LOG_JSON", "0")

        assert main(["cancel-stale", "--days", "7"]) == 0
        assert "Cancelled 0 order(s)" in capsys.readouterr().out

    def test_rejects_zero_days(self, capsys):
        assert main(["cancel-stale", "--days", "0"]) == 1
