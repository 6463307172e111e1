"""Tests for report rendering and email delivery."""
import smtplib
from unittest.mock import Mock

import pytest

from fieldreports.analysis import EnrichmentAssembler, ReportCompositor
from fieldreports.delivery import ReportDelivery, ALERT_TEMPLATE, STANDARD_TEMPLATE
from fieldreports.exceptions import DeliveryError
from fieldreports.models import ReportLog, TriggerType

from conftest import FakeMailer, FakeNarrative, FakeWeather, TODAY


@pytest.fixture
def compose_report(store, seeded_field):
    def compose(trigger_type=TriggerType.FIELD_UPDATE, narrative=None):
        item, _ = store.enqueue(seeded_field, trigger_type)
        assembler = EnrichmentAssembler(
            store, weather_client=FakeWeather(), narrative_client=narrative or FakeNarrative()
        )
        context = assembler.assemble(item, today=TODAY)
        return ReportCompositor(app_url="https://example.test").compose(context)

    return compose


def _logs(store):
    with store.session_factory() as db:
        return [row.status for row in db.query(ReportLog).order_by(ReportLog.id)]


def _delivery(mailer, store=None, **kwargs):
    return ReportDelivery(mailer, store=store, backoff_seconds=3.0, sleep=kwargs.pop("sleep", Mock()), **kwargs)


class TestRendering:
    def test_template_selection(self, compose_report):
        delivery = _delivery(FakeMailer())

        assert delivery.select_template(compose_report()) == STANDARD_TEMPLATE
        assert delivery.select_template(compose_report(TriggerType.LOSS_EVENT)) == ALERT_TEMPLATE

    def test_renders_standard_report(self, compose_report):
        html = _delivery(FakeMailer()).render(compose_report())

        assert "<h1>Field Update Report</h1>" in html
        assert "Moyo Estate" in html
        assert "<strong>Good</strong> crop stand." in html
        assert "Dear Tendai Moyo," in html
        assert "Natural Region II" in html
        assert 'class="alert-banner"' not in html

    def test_renders_alert_report(self, compose_report):
        html = _delivery(FakeMailer()).render(compose_report(TriggerType.PEST_DISEASE))

        assert 'class="alert-banner"' in html
        assert "A pest or disease problem was reported" in html
        assert "Recommended Actions" in html

    def test_field_values_are_escaped(self, compose_report):
        html = _delivery(FakeMailer()).render(compose_report())
        assert "<script>" not in html

        report = compose_report()
        report["farm_name"] = "<script>alert(1)</script>"
        html = _delivery(FakeMailer()).render(report)
        assert "<script>alert(1)</script>" not in html
        assert "&lt;script&gt;" in html

    def test_subject(self, compose_report):
        subject = _delivery(FakeMailer()).build_subject(compose_report())
        assert subject == "Yieldera Field Update Report: Moyo Estate - Maize"


class TestDeliver:
    def test_success_logs_once(self, store, compose_report):
        mailer = FakeMailer()
        result = _delivery(mailer, store=store).deliver(compose_report())

        assert result == {"message_id": "<1@test>"}
        assert mailer.sent[0]["to"] == "grower@example.com"
        assert _logs(store) == ["success"]

    def test_retries_with_backoff_and_reconnect(self, store, compose_report):
        mailer = FakeMailer(failures=2)
        sleep = Mock()

        _delivery(mailer, store=store, sleep=sleep).deliver(compose_report())

        assert mailer.attempts == 3
        assert mailer.resets == 2
        assert sleep.call_count == 2
        sleep.assert_called_with(3.0)
        assert _logs(store) == ["success"]

    def test_protocol_error_does_not_reconnect(self, compose_report):
        mailer = FakeMailer(failures=1, error=smtplib.SMTPRecipientsRefused({}))

        _delivery(mailer).deliver(compose_report())

        assert mailer.attempts == 2
        assert mailer.resets == 0

    def test_exhausted_retries_raise(self, store, compose_report):
        mailer = FakeMailer(failures=5)
        sleep = Mock()

        with pytest.raises(DeliveryError, match="after 3 attempts"):
            _delivery(mailer, store=store, sleep=sleep).deliver(compose_report())

        assert mailer.attempts == 3
        assert sleep.call_count == 2
        assert _logs(store) == ["failed"]

    def test_missing_recipient(self, compose_report):
        report = compose_report()
        report["recipient"]["email"] = None
        mailer = FakeMailer()

        with pytest.raises(DeliveryError, match="no recipient"):
            _delivery(mailer).deliver(report)
        assert mailer.attempts == 0

    def test_audit_log_failure_is_not_fatal(self, compose_report):
        store = Mock()
        store.log_report.side_effect = RuntimeError("disk full")
        mailer = FakeMailer()

        result = _delivery(mailer, store=store).deliver(compose_report())

        assert result["message_id"]
        store.log_report.assert_called_once_with(42, 3, True)
