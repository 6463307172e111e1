"""Process-wide service context: one instance of each collaborator, built once."""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from .config import Settings
from .database import create_db_engine, create_session_factory, init_db
from .store import ReportStore
from .weather import WeatherClient
from .llm import LLMClient, build_llm_client
from .mailer import EmailClient
from .delivery import ReportDelivery
from .analysis import EnrichmentAssembler, ReportCompositor
from .queue_worker import ReportQueueCoordinator

logger = logging.getLogger(__name__)


@dataclass
class ServiceContext:
    """Shared clients and components for the app, the scheduler and the CLI."""

    settings: Settings
    engine: Engine
    session_factory: sessionmaker
    store: ReportStore
    weather: WeatherClient
    llm: Optional[LLMClient]
    mailer: EmailClient
    assembler: EnrichmentAssembler
    compositor: ReportCompositor
    delivery: ReportDelivery
    coordinator: ReportQueueCoordinator

    def close(self):
        """Release network clients and the connection pool."""
        self.weather.close()
        if self.llm is not None:
            self.llm.close()
        self.mailer.close()
        self.engine.dispose()
        logger.info("Service context closed")


def build_context(settings: Settings, create_tables: bool = True) -> ServiceContext:
    """Wire every component from settings."""
    engine = create_db_engine(settings.database_url)
    if create_tables:
        init_db(engine)
    session_factory = create_session_factory(engine)
    store = ReportStore(session_factory)

    weather = WeatherClient(settings)
    llm = build_llm_client(settings)
    mailer = EmailClient(settings)

    assembler = EnrichmentAssembler(
        store,
        weather_client=weather,
        narrative_client=llm,
        max_workers=settings.enrichment_workers,
    )
    compositor = ReportCompositor(app_url=settings.app_url)
    delivery = ReportDelivery(
        mailer,
        store=store,
        send_retries=settings.email_send_retries,
        backoff_seconds=settings.email_retry_backoff_seconds,
    )
    coordinator = ReportQueueCoordinator(
        store,
        assembler,
        compositor,
        delivery,
        batch_size=settings.batch_size,
        throttle_seconds=settings.batch_throttle_seconds,
        stale_claim_minutes=settings.stale_claim_minutes,
    )

    return ServiceContext(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        store=store,
        weather=weather,
        llm=llm,
        mailer=mailer,
        assembler=assembler,
        compositor=compositor,
        delivery=delivery,
        coordinator=coordinator,
    )
