"""Shared fixtures: a temporary SQLite store and fake gateways."""
import smtplib
from datetime import date, timedelta

import pytest

from fieldreports.analysis import EnrichmentAssembler, ReportCompositor
from fieldreports.config import Settings
from fieldreports.database import create_db_engine, create_session_factory, init_db
from fieldreports.delivery import ReportDelivery
from fieldreports.models import Field, Farm, User
from fieldreports.queue_worker import ReportQueueCoordinator
from fieldreports.store import ReportStore


TODAY = date(2024, 11, 20)

NARRATIVE_TEXT = "**Good** crop stand.\n\n1. Scout weekly\n2. Top dress at knee height"


class FakeWeather:
    """Weather gateway returning a fixed dry window."""

    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def fetch(self, latitude, longitude, today=None):
        self.calls.append((latitude, longitude))
        if self.error:
            raise self.error
        today = today or TODAY
        historical = [
            {"date": today - timedelta(days=n), "temp_max": 31.0, "temp_min": 17.0, "precipitation": 0.5, "et0": 5.0}
            for n in range(29, -1, -1)
        ]
        forecast = [
            {"date": today + timedelta(days=n), "temp_max": 30.0, "temp_min": 16.0, "precipitation": 2.0, "et0": 5.0}
            for n in range(1, 8)
        ]
        return {"historical": historical, "forecast": forecast, "insights": []}

    def close(self):
        pass


class FakeNarrative:
    """Narrative gateway recording every prompt."""

    def __init__(self, text=NARRATIVE_TEXT, error=None):
        self.text = text
        self.error = error
        self.prompts = []

    def generate(self, prompt):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.text

    def close(self):
        pass


class FakeMailer:
    """Email gateway that fails the first ``failures`` sends."""

    def __init__(self, failures=0, error=None):
        self.failures = failures
        self.error = error or smtplib.SMTPServerDisconnected("Connection unexpectedly closed")
        self.attempts = 0
        self.sent = []
        self.resets = 0

    def send(self, to, subject, html, attachments=None):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise self.error
        self.sent.append({"to": to, "subject": subject, "html": html})
        return {"message_id": f"<{self.attempts}@test>"}

    def verify(self):
        return True

    def reset(self):
        self.resets += 1

    def close(self):
        pass


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        database_url=f"sqlite:///{tmp_path / 'test.db'}",
        anthropic_api_key="",
        openrouter_api_key="",
        enable_scheduler=False,
        batch_throttle_seconds=0,
    )


@pytest.fixture
def engine(settings):
    engine = create_db_engine(settings.database_url)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def store(session_factory):
    return ReportStore(session_factory)


def seed_field(session_factory, field_id=42, farm_id=7, user_id=3, **overrides):
    """Insert a user, farm and field; field columns can be overridden."""
    farm_overrides = {
        key: overrides.pop(key)
        for key in ("backup_power_available", "fire_guard_present", "irrigation_infrastructure_available")
        if key in overrides
    }
    values = {
        "field_name": "North Block",
        "crop_type": "Maize",
        "variety": "SC727",
        "field_size": 12.46,
        "soil_type": "Sandy loam",
        "planting_date": date(2024, 10, 15),
        "irrigation_method": "Rainfed",
        "basal_fertilizer": "Compound D",
        "basal_fertilizer_amount": 350,
        "latitude": -17.824858,
        "longitude": 31.053028,
    }
    values.update(overrides)

    with session_factory() as db:
        if db.get(User, user_id) is None:
            db.add(User(id=user_id, email="grower@example.com", first_name="Tendai", last_name="Moyo"))
        if db.get(Farm, farm_id) is None:
            db.add(Farm(
                id=farm_id,
                user_id=user_id,
                farm_name="Moyo Estate",
                farmer_name="Tendai Moyo",
                backup_power_available=farm_overrides.get("backup_power_available", "Yes"),
                fire_guard_present=farm_overrides.get("fire_guard_present", "Yes"),
                irrigation_infrastructure_available=farm_overrides.get("irrigation_infrastructure_available", "No"),
            ))
        db.add(Field(id=field_id, farm_id=farm_id, user_id=user_id, **values))
        db.commit()
    return field_id


@pytest.fixture
def make_field(session_factory):
    def make(**kwargs):
        return seed_field(session_factory, **kwargs)
    return make


@pytest.fixture
def seeded_field(make_field):
    return make_field()


@pytest.fixture
def fake_weather():
    return FakeWeather()


@pytest.fixture
def fake_narrative():
    return FakeNarrative()


@pytest.fixture
def fake_mailer():
    return FakeMailer()


@pytest.fixture
def build_coordinator(store):
    """Factory wiring a coordinator around the test store and given fakes."""

    def build(weather=None, narrative=None, mailer=None):
        assembler = EnrichmentAssembler(
            store,
            weather_client=weather or FakeWeather(),
            narrative_client=narrative or FakeNarrative(),
        )
        delivery = ReportDelivery(
            mailer or FakeMailer(),
            store=store,
            send_retries=2,
            backoff_seconds=0,
            sleep=lambda seconds: None,
        )
        return ReportQueueCoordinator(
            store,
            assembler,
            ReportCompositor(app_url="https://example.test"),
            delivery,
            batch_size=10,
            throttle_seconds=0,
            sleep=lambda seconds: None,
        )

    return build