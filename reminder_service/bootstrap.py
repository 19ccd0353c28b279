"""
Composition root: the only place that turns settings into wired objects
"""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.engine import Engine

from .bulk import BulkOperationCoordinator
from .config import ReminderSettings, settings
from .db import create_db_engine, create_session_factory, init_db
from .events import KombuEventPublisher, LoggingEventPublisher
from .lifecycle import ReminderLifecycleService
from .ports import EventPublisher
from .repository import SqlAlchemyReminderStore
from .scheduler import ReminderScheduler

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    engine: Engine
    store: SqlAlchemyReminderStore
    publisher: EventPublisher
    service: ReminderLifecycleService
    bulk: BulkOperationCoordinator

    def build_scheduler(self, cfg: ReminderSettings = settings) -> ReminderScheduler:
        return ReminderScheduler(
            self.service,
            interval_seconds=cfg.SCHEDULER_SCAN_INTERVAL_SECONDS,
            tick_timeout_seconds=cfg.SCHEDULER_TICK_TIMEOUT_SECONDS,
            batch_size=cfg.SCHEDULER_BATCH_SIZE,
        )

    def close(self) -> None:
        self.publisher.close()
        self.engine.dispose()


def build_publisher(cfg: ReminderSettings = settings) -> EventPublisher:
    if not cfg.EVENTS_ENABLED:
        logger.info("📣 [Events] Event publishing disabled, events will only be logged")
        return LoggingEventPublisher()
    return KombuEventPublisher(
        cfg.RABBITMQ_URL,
        cfg.RABBITMQ_EXCHANGE,
        timeout=cfg.PUBLISH_TIMEOUT_SECONDS,
    )


def build_container(cfg: ReminderSettings = settings, create_tables: bool = False) -> ServiceContainer:
    engine = create_db_engine(cfg.DATABASE_URL, echo=cfg.DATABASE_ECHO)
    if create_tables:
        init_db(engine)
    store = SqlAlchemyReminderStore(create_session_factory(engine))
    publisher = build_publisher(cfg)
    service = ReminderLifecycleService(store, publisher)
    return ServiceContainer(
        engine=engine,
        store=store,
        publisher=publisher,
        service=service,
        bulk=BulkOperationCoordinator(service),
    )


_container: Optional[ServiceContainer] = None


def get_container() -> ServiceContainer:
    """Process-wide container for task bodies; built on first use."""
    global _container
    if _container is None:
        _container = build_container(settings)
    return _container
